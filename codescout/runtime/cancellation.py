"""Cooperative cancellation tokens.

A token is a latched flag: once tripped it stays tripped. Work polls it at
safe points (before the next file, before the next request) and callers can
subscribe to be notified when it trips.
"""

from __future__ import annotations

import logging
from typing import Callable

logger = logging.getLogger(__name__)


class TaskCanceledError(Exception):
    """Raised by work that observed a tripped cancellation token."""

    pass


class TaskTimeoutError(Exception):
    """Raised when a task's deadline elapsed before it settled."""

    pass


class CancellationToken:
    """Read side of a cancellation flag."""

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: str | None = None
        self._callbacks: list[Callable[[], None]] = []
        self._links: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str | None:
        return self._reason

    def raise_if_cancelled(self) -> None:
        """Raise TaskCanceledError if the token has tripped."""
        if self._cancelled:
            raise TaskCanceledError(self._reason or "Aborted")

    def add_callback(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Call ``callback`` once when the token trips.

        Runs immediately if already tripped. Returns a function that removes
        the subscription.
        """
        if self._cancelled:
            callback()
            return lambda: None

        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def _trip(self, reason: str | None) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._reason = reason
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.error(f"Cancellation callback failed: {e}", exc_info=True)

    @classmethod
    def none(cls) -> CancellationToken:
        """A token that never trips."""
        return cls()

    @classmethod
    def any(cls, *tokens: CancellationToken | None) -> CancellationToken:
        """Token that trips as soon as any of ``tokens`` trips.

        Call ``detach()`` on the result once it is no longer needed so
        long-lived input tokens do not keep its callback.
        """
        source = CancellationSource()
        for token in tokens:
            if token is None:
                continue
            if token.cancelled:
                source.cancel(token.reason)
                break
            source.token._links.append(token.add_callback(lambda t=token: source.cancel(t.reason)))
        return source.token

    def detach(self) -> None:
        """Stop following the tokens this one was combined from."""
        links, self._links = self._links, []
        for unsubscribe in links:
            unsubscribe()


class CancellationSource:
    """Write side of a cancellation flag; owns exactly one token."""

    def __init__(self) -> None:
        self._token = CancellationToken()

    @property
    def token(self) -> CancellationToken:
        return self._token

    @property
    def cancelled(self) -> bool:
        return self._token.cancelled

    def cancel(self, reason: str | None = None) -> None:
        """Trip the token. Later calls are no-ops."""
        self._token._trip(reason)

"""codescout - budgeted codebase research.

Answers natural-language questions about a codebase by running locator,
analyzer and pattern-finder subagents concurrently under file, byte and time
budgets, then merging their results into one referenced report.
"""

__version__ = "0.1.0"

"""MCP server package for codescout."""

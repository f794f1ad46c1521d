from __future__ import annotations


class ToolError(RuntimeError):
    """Base class for tooling-related failures."""


class ToolNotFoundError(ToolError):
    """Raised when a requested tool cannot be resolved."""

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Tool not found: {tool_name}")
        self.tool_name = tool_name


class RegistryAccessError(ToolError):
    """Raised when the tool registry backend cannot be read."""


class AuditSinkError(RuntimeError):
    """Raised when the system log backend rejects a read or write."""

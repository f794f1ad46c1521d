from .exceptions import AuditSinkError, RegistryAccessError, ToolError, ToolNotFoundError
from .invoker import ToolInvoker
from .models import InvocationOutcome, Tool, ToolCandidate
from .registry import InMemoryToolRegistry, PostgresToolRegistry, ToolRegistry, build_tool_registry

__all__ = [
    "AuditSinkError",
    "InMemoryToolRegistry",
    "InvocationOutcome",
    "PostgresToolRegistry",
    "RegistryAccessError",
    "Tool",
    "ToolCandidate",
    "ToolError",
    "ToolInvoker",
    "ToolNotFoundError",
    "ToolRegistry",
    "build_tool_registry",
]

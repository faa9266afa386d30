from .catalogue import ToolName, build_handlers, build_registry
from .handlers import ToolHandlers

__all__ = ["ToolName", "ToolHandlers", "build_handlers", "build_registry"]

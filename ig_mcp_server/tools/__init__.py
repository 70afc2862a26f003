"""Tool synthesis, handlers and the gadget tool registry."""
from .handlers import GadgetHandler, RegisteredTool
from .synthesis import synthesize
from .tool_registry import GadgetToolRegistry, MAX_CONCURRENT_FETCHES
from .tool_result import MAX_RESULT_BYTES, ToolResult, wrap_output

__all__ = [
    'GadgetHandler',
    'GadgetToolRegistry',
    'MAX_CONCURRENT_FETCHES',
    'MAX_RESULT_BYTES',
    'RegisteredTool',
    'ToolResult',
    'synthesize',
    'wrap_output',
]

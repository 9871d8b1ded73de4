"""Render Result values as MCP tool results."""

from mcp.types import CallToolResult, TextContent

from srchd.lib.error import SrchdError


def error_to_text(error: SrchdError) -> str:
    text = f"Error [{error.code}]: {error.message}"
    cause = error.cause
    while cause is not None:
        if isinstance(cause, SrchdError):
            text += f"\nCaused by [{cause.code}]: {cause.message}"
            cause = cause.cause
        else:
            text += f"\nCaused by: {cause}"
            cause = None
    return text


def error_to_call_tool_result(error: SrchdError) -> CallToolResult:
    return CallToolResult(
        isError=True,
        content=[TextContent(type="text", text=error_to_text(error))],
    )


def text_to_call_tool_result(text: str) -> CallToolResult:
    return CallToolResult(
        isError=False,
        content=[TextContent(type="text", text=text)],
    )

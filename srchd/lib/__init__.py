"""Shared helpers: result channel, errors, bounded concurrency, MCP rendering."""

from srchd.lib.async_utils import concurrent_executor
from srchd.lib.error import SrchdError, normalize_error
from srchd.lib.result import Err, Ok, Result

__all__ = [
    "concurrent_executor",
    "SrchdError",
    "normalize_error",
    "Err",
    "Ok",
    "Result",
]

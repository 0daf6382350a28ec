"""Binary toolchain interfaces and implementations."""

from .base import Toolchain, ToolResult, run_tool
from .darwin import DarwinToolchain
from .inprocess import FakeBinary, FakeSlice, InProcessToolchain

__all__ = [
    "DarwinToolchain",
    "FakeBinary",
    "FakeSlice",
    "InProcessToolchain",
    "ToolResult",
    "Toolchain",
    "run_tool",
]

"""Debug and ABI metadata generation."""

from .types import ParamType, StackItemType, sc_and_vm_types
from .info import (
    DebugParam, MethodDebugInfo, EventDebugInfo, DebugInfo, DebugInfoBuilder, check_ranges,
)

__all__ = [
    'ParamType', 'StackItemType', 'sc_and_vm_types',
    'DebugParam', 'MethodDebugInfo', 'EventDebugInfo', 'DebugInfo', 'DebugInfoBuilder',
    'check_ranges',
]

"""Code generation: slot allocation, init planning and function lowering."""

from .slots import SlotTable, MAX_SLOTS
from .emitter import FunctionEmitter, FunctionRecord, SequencePoint
from .planner import InitPlanner, CodePlan, module_order

__all__ = [
    'SlotTable', 'MAX_SLOTS',
    'FunctionEmitter', 'FunctionRecord', 'SequencePoint',
    'InitPlanner', 'CodePlan', 'module_order',
]

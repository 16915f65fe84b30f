"""VM instruction set and bytecode assembly."""

from .opcodes import Opcode, OpcodeTable
from .assembler import Program
from .disasm import Instruction, disassemble, iter_instructions

__all__ = [
    'Opcode', 'OpcodeTable',
    'Program',
    'Instruction', 'disassemble', 'iter_instructions',
]

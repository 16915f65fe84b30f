"""
VM opcode definitions.

Defines the stack VM instruction set and the operand layout of every opcode.
"""

from enum import IntEnum
from dataclasses import dataclass
from typing import Dict, Optional


class Opcode(IntEnum):
    """Stack VM opcodes."""
    # Constants
    PUSH0 = 0x00        # Also pushes the empty byte string
    PUSHBYTES1 = 0x01   # 0x01-0x4B: push the next N bytes
    PUSHBYTES75 = 0x4B
    PUSHDATA1 = 0x4C
    PUSHDATA2 = 0x4D
    PUSHDATA4 = 0x4E
    PUSHM1 = 0x4F
    PUSHNULL = 0x50
    PUSH1 = 0x51
    PUSH2 = 0x52
    PUSH3 = 0x53
    PUSH4 = 0x54
    PUSH5 = 0x55
    PUSH6 = 0x56
    PUSH7 = 0x57
    PUSH8 = 0x58
    PUSH9 = 0x59
    PUSH10 = 0x5A
    PUSH11 = 0x5B
    PUSH12 = 0x5C
    PUSH13 = 0x5D
    PUSH14 = 0x5E
    PUSH15 = 0x5F
    PUSH16 = 0x60

    # Flow control
    NOP = 0x61
    JMP = 0x62
    JMPIF = 0x63
    JMPIFNOT = 0x64
    CALL = 0x65
    RET = 0x66
    SYSCALL = 0x68

    # Stack
    DEPTH = 0x74
    DROP = 0x75
    DUP = 0x76
    NIP = 0x77
    OVER = 0x78
    PICK = 0x79
    ROLL = 0x7A
    ROT = 0x7B
    SWAP = 0x7C
    TUCK = 0x7D

    # Splice
    CAT = 0x7E
    SUBSTR = 0x7F
    LEFT = 0x80
    RIGHT = 0x81
    SIZE = 0x82

    # Bitwise logic
    INVERT = 0x83
    AND = 0x84
    OR = 0x85
    XOR = 0x86
    EQUAL = 0x87

    # Arithmetic
    INC = 0x8B
    DEC = 0x8C
    SIGN = 0x8D
    NEGATE = 0x8F
    ABS = 0x90
    NOT = 0x91
    NZ = 0x92
    ADD = 0x93
    SUB = 0x94
    MUL = 0x95
    DIV = 0x96
    MOD = 0x97
    SHL = 0x98
    SHR = 0x99
    BOOLAND = 0x9A
    BOOLOR = 0x9B
    NUMEQUAL = 0x9C
    NUMNOTEQUAL = 0x9E
    LT = 0x9F
    GT = 0xA0
    LTE = 0xA1
    GTE = 0xA2
    MIN = 0xA3
    MAX = 0xA4
    WITHIN = 0xA5

    # Exceptions
    TRY = 0xB0
    ENDTRY = 0xB1
    ENDFINALLY = 0xB2

    # Compound types
    ARRAYSIZE = 0xC0
    PACK = 0xC1
    UNPACK = 0xC2
    PICKITEM = 0xC3
    SETITEM = 0xC4
    NEWARRAY = 0xC5
    NEWSTRUCT = 0xC6
    NEWMAP = 0xC7
    APPEND = 0xC8
    REVERSE = 0xC9
    REMOVE = 0xCA
    HASKEY = 0xCB
    KEYS = 0xCC
    VALUES = 0xCD

    # Slots
    INITSSLOT = 0xD0
    INITSLOT = 0xD1
    LDSFLD = 0xD2
    STSFLD = 0xD3
    LDLOC = 0xD4
    STLOC = 0xD5
    LDARG = 0xD6
    STARG = 0xD7

    THROW = 0xF0
    THROWIFNOT = 0xF1


# Longest payload PUSHBYTESn can carry inline.
MAX_PUSHBYTES = 75

# Longest external-call descriptor a SYSCALL can carry.
MAX_SYSCALL_NAME = 252


@dataclass
class OpcodeInfo:
    """Operand layout of a single opcode."""
    name: str
    operand_size: int = 0   # Fixed operand bytes following the opcode
    prefix_size: int = 0    # Little-endian length prefix preceding variable data
    is_jump: bool = False   # Operand is a 2-byte label resolved at finalization

    def __repr__(self):
        return f"OpcodeInfo({self.name}, {self.operand_size}+{self.prefix_size})"


class OpcodeTable:
    """Lookup table for opcode operand layouts."""

    OPCODES: Dict[int, OpcodeInfo] = {
        Opcode.PUSHDATA1: OpcodeInfo('PUSHDATA1', prefix_size=1),
        Opcode.PUSHDATA2: OpcodeInfo('PUSHDATA2', prefix_size=2),
        Opcode.PUSHDATA4: OpcodeInfo('PUSHDATA4', prefix_size=4),
        Opcode.SYSCALL: OpcodeInfo('SYSCALL', prefix_size=1),

        Opcode.JMP: OpcodeInfo('JMP', 2, is_jump=True),
        Opcode.JMPIF: OpcodeInfo('JMPIF', 2, is_jump=True),
        Opcode.JMPIFNOT: OpcodeInfo('JMPIFNOT', 2, is_jump=True),
        Opcode.CALL: OpcodeInfo('CALL', 2, is_jump=True),
        Opcode.ENDTRY: OpcodeInfo('ENDTRY', 2, is_jump=True),
        # Two labels (catch, finally), patched individually.
        Opcode.TRY: OpcodeInfo('TRY', 4),

        Opcode.INITSSLOT: OpcodeInfo('INITSSLOT', 1),
        Opcode.INITSLOT: OpcodeInfo('INITSLOT', 2),
        Opcode.LDSFLD: OpcodeInfo('LDSFLD', 1),
        Opcode.STSFLD: OpcodeInfo('STSFLD', 1),
        Opcode.LDLOC: OpcodeInfo('LDLOC', 1),
        Opcode.STLOC: OpcodeInfo('STLOC', 1),
        Opcode.LDARG: OpcodeInfo('LDARG', 1),
        Opcode.STARG: OpcodeInfo('STARG', 1),
    }

    @classmethod
    def get_info(cls, op: int) -> Optional[OpcodeInfo]:
        """Get the operand layout of an opcode byte, or None if it is unknown."""
        if Opcode.PUSHBYTES1 <= op <= Opcode.PUSHBYTES75:
            return OpcodeInfo(f'PUSHBYTES{op}', operand_size=op)
        info = cls.OPCODES.get(op)
        if info is not None:
            return info
        try:
            return OpcodeInfo(Opcode(op).name)
        except ValueError:
            return None

    @classmethod
    def is_jump(cls, op: int) -> bool:
        """Check whether an opcode takes a single 2-byte label operand."""
        info = cls.OPCODES.get(op)
        return info is not None and info.is_jump

    @classmethod
    def name(cls, op: int) -> str:
        info = cls.get_info(op)
        return info.name if info else f'0x{op:02X}'

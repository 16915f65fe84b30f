"""
Instruction decoder for finalized VM scripts.
"""

from dataclasses import dataclass
from typing import List, Iterator, Optional
import struct

from .opcodes import Opcode, OpcodeTable


@dataclass
class Instruction:
    """A single decoded instruction."""
    offset: int
    opcode: int
    name: str
    operand: bytes = b''

    @property
    def size(self) -> int:
        return 1 + len(self.operand)

    def jump_target(self) -> Optional[int]:
        """Absolute target of a label-carrying instruction."""
        if OpcodeTable.is_jump(self.opcode):
            return self.offset + struct.unpack('<h', self.operand[:2])[0]
        return None

    def try_targets(self):
        """(catch, finally) absolute targets of a TRY, None where absent."""
        if self.opcode != Opcode.TRY:
            return None
        catch, fin = struct.unpack('<hh', self.operand[:4])
        return (self.offset + catch if catch else None,
                self.offset + fin if fin else None)

    def data(self) -> bytes:
        """Payload of a push or syscall, without its length prefix."""
        info = OpcodeTable.get_info(self.opcode)
        if info is None:
            return b''
        return self.operand[info.prefix_size:]

    def __str__(self):
        target = self.jump_target()
        if target is not None:
            return f"{self.offset:04X}: {self.name} -> {target:04X}"
        if self.opcode == Opcode.SYSCALL:
            return f"{self.offset:04X}: {self.name} {self.data().decode('utf-8', 'replace')}"
        if self.operand:
            return f"{self.offset:04X}: {self.name} {self.operand.hex()}"
        return f"{self.offset:04X}: {self.name}"


def iter_instructions(script: bytes) -> Iterator[Instruction]:
    """
    Decode a script instruction by instruction.

    Raises:
        ValueError: On an unknown opcode or a truncated operand
    """
    ip = 0
    while ip < len(script):
        op = script[ip]
        info = OpcodeTable.get_info(op)
        if info is None:
            raise ValueError(f"unknown opcode 0x{op:02X} at {ip}")
        size = info.operand_size
        if info.prefix_size:
            fmt = {1: '<B', 2: '<H', 4: '<I'}[info.prefix_size]
            prefix = script[ip + 1:ip + 1 + info.prefix_size]
            if len(prefix) < info.prefix_size:
                raise ValueError(f"truncated {info.name} at {ip}")
            size = info.prefix_size + struct.unpack(fmt, prefix)[0]
        end = ip + 1 + size
        if end > len(script):
            raise ValueError(f"truncated {info.name} at {ip}")
        yield Instruction(ip, op, info.name, bytes(script[ip + 1:end]))
        ip = end


def disassemble(script: bytes) -> List[Instruction]:
    return list(iter_instructions(script))

"""
Bytecode assembler - builds a VM script from opcode emissions.

The Program buffer is append-only. Jumps and calls refer to numeric labels
whose offsets are unknown at emission time; each such instruction is written
with a provisional argument and recorded in a pending table, then rewritten
by finalize() once every label has been defined.

Errors are sticky: the first failure is kept in Program.err and every later
emission call does nothing. Callers check the error once per phase.
"""

from typing import List, Dict, Optional, Tuple
import struct

from .opcodes import Opcode, OpcodeTable, MAX_PUSHBYTES, MAX_SYSCALL_NAME
from ..errors import InternalCompilerError, InvalidSyscallError, CompileError


MAX_LABEL = 0xFFFF


class Program:
    """Append-only instruction buffer with label resolution."""

    def __init__(self):
        self.buf = bytearray()
        # label id -> offset where the label was defined
        self.labels: Dict[int, int] = {}
        # label id -> [(instruction offset, argument offset)]
        self.pending: Dict[int, List[Tuple[int, int]]] = {}
        self.err: Optional[Exception] = None
        self._next_label = 0

    # -- state --------------------------------------------------------------

    def length(self) -> int:
        """Current size of the buffer in bytes."""
        return len(self.buf)

    def bytes(self) -> bytes:
        return bytes(self.buf)

    def fail(self, err: Exception):
        """Record an error unless one is already recorded."""
        if self.err is None:
            self.err = err

    def check(self):
        """Raise the recorded error, if any."""
        if self.err is not None:
            raise self.err

    def truncate(self, length: int):
        """Drop everything emitted after `length`."""
        if self.err is not None:
            return
        if length > len(self.buf):
            raise InternalCompilerError(
                f"cannot truncate {len(self.buf)}-byte program to {length} bytes")
        del self.buf[length:]

    def patch_byte(self, offset: int, value: int):
        """Overwrite a single previously emitted byte."""
        if self.err is not None:
            return
        self.buf[offset] = value & 0xFF

    # -- plain emission -----------------------------------------------------

    def emit(self, op: int, args: bytes = b''):
        """Append one instruction with its raw argument bytes."""
        if self.err is not None:
            return
        self.buf.append(op)
        if args:
            self.buf.extend(args)

    def emit_opcodes(self, *ops: int):
        for op in ops:
            self.emit(op)

    def emit_bool(self, value: bool):
        self.emit(Opcode.PUSH1 if value else Opcode.PUSH0)

    def emit_int(self, value: int):
        """
        Push an integer constant.

        -1, 0 and 1..15 have dedicated opcodes. Anything else is pushed as
        the shortest little-endian two's complement byte string.
        """
        if value == -1:
            self.emit(Opcode.PUSHM1)
        elif value == 0:
            self.emit(Opcode.PUSH0)
        elif 1 <= value <= 15:
            self.emit(Opcode.PUSH1 + value - 1)
        else:
            magnitude = value if value >= 0 else ~value
            size = magnitude.bit_length() // 8 + 1
            self.emit_bytes(value.to_bytes(size, 'little', signed=True))

    def emit_bytes(self, data: bytes):
        """Push a byte string using the shortest length encoding."""
        n = len(data)
        if n <= MAX_PUSHBYTES:
            self.emit(n, data)
        elif n <= 0xFF:
            self.emit(Opcode.PUSHDATA1, struct.pack('<B', n) + data)
        elif n <= 0xFFFF:
            self.emit(Opcode.PUSHDATA2, struct.pack('<H', n) + data)
        elif n <= 0xFFFFFFFF:
            self.emit(Opcode.PUSHDATA4, struct.pack('<I', n) + data)
        else:
            self.fail(CompileError(f"byte string of {n} bytes is too long to push"))

    def emit_string(self, s: str):
        self.emit_bytes(s.encode('utf-8'))

    def emit_syscall(self, name: str):
        """Emit an external call by its descriptor name."""
        raw = name.encode('utf-8')
        if not raw:
            self.fail(InvalidSyscallError("syscall name cannot be empty"))
            return
        if len(raw) > MAX_SYSCALL_NAME:
            self.fail(InvalidSyscallError(
                f"syscall name {name!r} is longer than {MAX_SYSCALL_NAME} bytes"))
            return
        self.emit(Opcode.SYSCALL, struct.pack('<B', len(raw)) + raw)

    # -- labels and jumps ---------------------------------------------------

    def new_label(self) -> int:
        """Allocate a fresh label id."""
        label = self._next_label
        if label > MAX_LABEL:
            self.fail(CompileError("label number is too big"))
            return 0
        self._next_label += 1
        return label

    def define_label(self, label: int):
        """Bind `label` to the current end of the buffer."""
        self.labels[label] = len(self.buf)

    def emit_jump(self, op: int, label: int):
        """
        Emit a jump or call to `label`.

        Args:
            op: A jump-shaped opcode (JMP, JMPIF, JMPIFNOT, CALL, ENDTRY)
            label: Target label id, defined before or after this call

        Raises:
            InternalCompilerError: If `op` does not take a label argument
        """
        if not OpcodeTable.is_jump(op):
            raise InternalCompilerError(
                f"emitting jump with non-jump opcode {OpcodeTable.name(op)}")
        if self.err is not None:
            return
        instr = len(self.buf)
        self.pending.setdefault(label, []).append((instr, instr + 1))
        self.emit(op, struct.pack('<H', label & MAX_LABEL))

    def emit_call(self, label: int):
        self.emit_jump(Opcode.CALL, label)

    def emit_try(self, catch_label: Optional[int], finally_label: Optional[int]):
        """Open a TRY frame. A missing handler is encoded as a zero offset."""
        if self.err is not None:
            return
        instr = len(self.buf)
        args = bytearray(4)
        for i, label in enumerate((catch_label, finally_label)):
            if label is not None:
                self.pending.setdefault(label, []).append((instr, instr + 1 + 2 * i))
                struct.pack_into('<H', args, 2 * i, label & MAX_LABEL)
        self.emit(Opcode.TRY, bytes(args))

    def finalize(self):
        """
        Resolve every pending jump.

        Each 2-byte argument becomes the signed distance from the jump
        instruction itself to the label target. An undefined label or a
        distance that does not fit in 16 bits is recorded as the sticky error.
        """
        if self.err is not None:
            return
        for label, sites in self.pending.items():
            target = self.labels.get(label)
            if target is None:
                self.fail(InternalCompilerError(f"label {label} is never defined"))
                return
            for instr, arg in sites:
                offset = target - instr
                if not -0x8000 <= offset <= 0x7FFF:
                    self.fail(CompileError(
                        f"jump from {instr} to {target} does not fit in 16 bits"))
                    return
                struct.pack_into('<h', self.buf, arg, offset)
        self.pending.clear()

"""
Compilation errors.

Every diagnosable problem in the compiled program is a CompileError subclass.
InternalCompilerError marks a defect in the compiler itself and is kept out of
that hierarchy so callers never mistake it for a user error.
"""

from typing import Optional


class CompileError(Exception):
    """Base class for all user-facing compilation errors."""


class CapacityError(CompileError):
    """Raised when the program needs more global slots than the VM provides."""

    def __init__(self, required: int, limit: int = 255):
        super().__init__(f"too many global variables: {required} slots required (maximum is {limit})")
        self.required = required
        self.limit = limit


class ImportCycleError(CompileError):
    """Raised when the module import graph contains a cycle."""

    def __init__(self, importer: str, imported: str):
        super().__init__(f"import cycle: {importer!r} imports {imported!r} which is still being visited")
        self.importer = importer
        self.imported = imported


class UnknownModuleError(CompileError):
    """Raised when an import refers to a module the program does not contain."""

    def __init__(self, importer: str, imported: str):
        super().__init__(f"failed to load {imported!r} module from {importer!r}")
        self.importer = importer
        self.imported = imported


class GenericsUnsupportedError(CompileError):
    """Raised for any parametric function, receiver or type declaration."""

    def __init__(self, name: str, detail: str):
        super().__init__(f"generics are currently unsupported: {name} has {detail}")
        self.name = name
        self.detail = detail


class MissingParamNameError(CompileError):
    """Raised when an exported function has an unnamed parameter."""

    def __init__(self, func_name: str, index: Optional[int] = None):
        where = func_name if index is None else f"{func_name}/{index}"
        super().__init__(f"missing parameter name: exported method is not allowed "
                         f"to have unnamed parameter: {where}")
        self.func_name = func_name
        self.index = index


class InvalidReturnCountError(CompileError):
    """Raised when an exported function returns more than one value."""

    def __init__(self, func_name: str, count: int):
        super().__init__(f"exported method is not allowed to have more than one "
                         f"return value: {func_name}/{count} return values")
        self.func_name = func_name
        self.count = count


class InvalidSyscallError(CompileError):
    """Raised for an external-call descriptor the VM cannot encode."""


class UnsupportedError(CompileError):
    """Raised when a construct cannot be lowered to bytecode."""


class IRFormatError(CompileError):
    """Raised when an IR document is malformed."""


class InternalCompilerError(RuntimeError):
    """A broken compiler invariant. Never caused by user source."""

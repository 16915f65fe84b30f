"""
Test fixtures and helpers for contractc tests.

Programs are built directly as IR with a small fluent builder:

    prog = (ProgramBuilder('main')
            .module('main').imports(util='util')
                .func('Main', results=[INT], body=[ret(call(sel('util', 'Get')))])
            .module('util')
                .var('x', lit(1))
                .func('Get', results=[INT], body=[ret(ident('x'))])
            .build())
"""

import sys
from pathlib import Path
from typing import List, Optional, Dict, Any

import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from contractc.ir.nodes import (
    TypeRef, TypeKind, INT, BOOL, STRING, BYTES, ANY,
    Literal, Ident, SelectorExpr, CallExpr, CompositeLit, KeyValueExpr,
    BinaryExpr, UnaryExpr, IndexExpr,
    BlockStmt, ExprStmt, AssignStmt, ReturnStmt, IfStmt, ForStmt, BranchStmt, DeferStmt,
    Param, FuncDecl, GlobalDecl, ConstDecl, TypeDecl,
    SourceFile, Module, Program,
)
from contractc.compiler import ContractCompiler, CompilationResult
from contractc.vm.disasm import disassemble


# ----------------------------------------------------------------------------
# Expression and statement shorthands

def lit(value, type=None, line=0):
    return Literal(value, type, pos=(line, 1, line, 1))


def ident(name, type=None):
    return Ident(name, type)


def sel(x, name, type=None):
    """Cross-module reference: alias.name"""
    if isinstance(x, str):
        x = Ident(x)
    return SelectorExpr(x, name, type=type)


def field_of(x, name, type=None):
    """Field selection on a value."""
    return SelectorExpr(x, name, is_selection=True, type=type)


def method_call(x, name, method, *args, type=None):
    return CallExpr(SelectorExpr(x, name, is_selection=True, method=method), list(args), type)


def call(fun, *args, type=None):
    if isinstance(fun, str):
        fun = Ident(fun)
    return CallExpr(fun, list(args), type)


def binop(op, x, y, type=None):
    return BinaryExpr(op, x, y, type)


def ret(value=None, line=0):
    return ReturnStmt(value, pos=(line, 1, line, 10))


def expr(x, line=0):
    return ExprStmt(x, pos=(line, 1, line, 10))


def assign(target, value, line=0):
    if isinstance(target, str):
        target = Ident(target)
    return AssignStmt(target, value, pos=(line, 1, line, 10))


def define(name, value=None, type=None, line=0):
    return AssignStmt(Ident(name, type), value, define=True, type=type,
                      pos=(line, 1, line, 10))


def defer(c, line=0):
    return DeferStmt(c, pos=(line, 1, line, 10))


def p(name, type=INT):
    return Param(name, type)


def struct(name, *fields):
    return TypeRef(TypeKind.STRUCT, name=name, fields=list(fields))


def interop(name):
    return TypeRef(TypeKind.INTEROP, name=name)


def array_of(elem):
    return TypeRef(TypeKind.ARRAY, elem=elem)


def map_of(key, elem):
    return TypeRef(TypeKind.MAP, key=key, elem=elem)


# ----------------------------------------------------------------------------
# Program builder

class ProgramBuilder:
    """Fluent builder for IR programs. Declarations go to the current file."""

    def __init__(self, root: str = 'main'):
        self.root = root
        self.modules: Dict[str, Module] = {}
        self._module: Optional[Module] = None
        self._file: Optional[SourceFile] = None
        self._line = 0

    def module(self, path: str, name: str = '') -> 'ProgramBuilder':
        self._module = Module(path, name)
        self.modules[path] = self._module
        return self.file(f"{path}/{self._module.name}.go")

    def file(self, path: str) -> 'ProgramBuilder':
        self._file = SourceFile(path)
        self._module.files.append(self._file)
        return self

    def imports(self, **aliases: str) -> 'ProgramBuilder':
        self._file.imports.update(aliases)
        return self

    def _pos(self):
        self._line += 1
        return (self._line, 1, self._line, 20)

    def _add(self, decl) -> 'ProgramBuilder':
        self._file.decls.append(decl)
        return self

    def func(self, name: str, params: Optional[List[Param]] = None,
             results: Optional[List[TypeRef]] = None, body: Optional[List[Any]] = None,
             receiver: Optional[Param] = None, syscall: Optional[str] = None,
             type_params: Optional[List[str]] = None) -> 'ProgramBuilder':
        block = BlockStmt(list(body or [])) if syscall is None else None
        return self._add(FuncDecl(name, params, results, block, receiver, type_params,
                                  syscall, pos=self._pos()))

    def var(self, name: str, value=None, type: Optional[TypeRef] = None) -> 'ProgramBuilder':
        return self._add(GlobalDecl(name, value, type, pos=self._pos()))

    def const(self, name: str, value, type: Optional[TypeRef] = None) -> 'ProgramBuilder':
        return self._add(ConstDecl(name, value, type, pos=self._pos()))

    def type(self, name: str, typ: TypeRef,
             type_params: Optional[List[str]] = None) -> 'ProgramBuilder':
        return self._add(TypeDecl(name, typ, type_params, pos=self._pos()))

    def build(self) -> Program:
        return Program(dict(self.modules), self.root)


# ----------------------------------------------------------------------------
# Compilation helpers

def compile_ir(program: Program, verbose: bool = False) -> CompilationResult:
    return ContractCompiler(verbose=verbose).compile_program(program)


def op_names(script: bytes) -> List[str]:
    """Opcode names of a script, in order."""
    return [ins.name for ins in disassemble(script)]


def method_ops(result: CompilationResult, method_id: str) -> List[str]:
    """Opcode names inside the range of one method."""
    m = result.debug_info.get_method(method_id)
    assert m is not None, f"no method {method_id}"
    return [ins.name for ins in disassemble(result.bytecode)
            if m.start <= ins.offset <= m.end]


class AssertProgram:
    """
    Fluent assertion helper.

    Usage:
        AssertProgram(builder).with_warnings("W0100").compiles()
    """

    def __init__(self, builder: ProgramBuilder):
        self.builder = builder
        self.expected_warnings: List[str] = []
        self.unexpected_warnings: List[str] = []

    def with_warnings(self, *codes: str) -> 'AssertProgram':
        self.expected_warnings.extend(codes)
        return self

    def without_warnings(self, *codes: str) -> 'AssertProgram':
        self.unexpected_warnings.extend(codes)
        return self

    def compiles(self) -> CompilationResult:
        compiler = ContractCompiler()
        result = compiler.compile_program(self.builder.build())
        warnings = compiler.get_warnings()
        for code in self.expected_warnings:
            assert any(w.startswith(code) for w in warnings), \
                f"expected warning {code}, got {warnings}"
        for code in self.unexpected_warnings:
            assert not any(w.startswith(code) for w in warnings), \
                f"unexpected warning {code} in {warnings}"
        return result

    def does_not_compile(self, error_class) -> Exception:
        with pytest.raises(error_class) as info:
            ContractCompiler().compile_program(self.builder.build())
        return info.value

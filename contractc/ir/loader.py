"""
IR loader - builds a Program from its JSON interchange form.

Document layout:

    {"root": "<module path>",
     "modules": [{"path": ..., "name": ..., "files": [
         {"path": ..., "imports": {"alias": "<module path>"},
          "decls": [{"kind": "func" | "var" | "const" | "type", ...}]}]}]}

Expressions and statements are objects tagged by "kind"; every node may carry
"pos": [line, column, end_line, end_column]. Types are either a bare kind
name ("int") or an object {"kind": ..., "name": ..., "elem": ..., ...}.
"""

import json
from typing import Any, Dict, List, Optional

from .nodes import (
    Position, NO_POS, TypeKind, TypeRef,
    Expr, Literal, Ident, SelectorExpr, CallExpr, CompositeLit, KeyValueExpr,
    BinaryExpr, UnaryExpr, IndexExpr,
    Stmt, BlockStmt, ExprStmt, AssignStmt, ReturnStmt, IfStmt, ForStmt,
    BranchStmt, DeferStmt,
    Param, Decl, FuncDecl, GlobalDecl, ConstDecl, TypeDecl,
    SourceFile, Module, Program,
)
from ..errors import IRFormatError


TYPE_KINDS = {kind.name.lower(): kind for kind in TypeKind}


class IRLoader:
    """Converts decoded JSON documents into IR nodes."""

    def load(self, doc: Dict[str, Any]) -> Program:
        if not isinstance(doc, dict):
            raise IRFormatError("IR document must be an object")
        root = self._require(doc, 'root', 'program')
        modules: Dict[str, Module] = {}
        for m in self._require(doc, 'modules', 'program'):
            module = self._module(m)
            if module.path in modules:
                raise IRFormatError(f"duplicate module {module.path!r}")
            modules[module.path] = module
        if root not in modules:
            raise IRFormatError(f"root module {root!r} is not defined")
        return Program(modules, root)

    def _require(self, obj: Dict[str, Any], key: str, what: str) -> Any:
        if not isinstance(obj, dict) or key not in obj:
            raise IRFormatError(f"{what} is missing {key!r}")
        return obj[key]

    def _pos(self, obj: Dict[str, Any]) -> Position:
        pos = obj.get('pos')
        if pos is None:
            return NO_POS
        if not isinstance(pos, list) or len(pos) != 4:
            raise IRFormatError(f"bad position {pos!r}")
        return tuple(int(p) for p in pos)

    def _module(self, obj: Dict[str, Any]) -> Module:
        path = self._require(obj, 'path', 'module')
        files = [self._file(f) for f in obj.get('files', [])]
        return Module(path, obj.get('name', ''), files)

    def _file(self, obj: Dict[str, Any]) -> SourceFile:
        path = self._require(obj, 'path', 'file')
        imports = obj.get('imports', {})
        if not isinstance(imports, dict):
            raise IRFormatError(f"imports of {path!r} must be an object")
        decls = [self._decl(d) for d in obj.get('decls', [])]
        return SourceFile(path, decls, dict(imports))

    # -- types --------------------------------------------------------------

    def type(self, obj: Any) -> Optional[TypeRef]:
        if obj is None:
            return None
        if isinstance(obj, str):
            obj = {'kind': obj}
        kind = TYPE_KINDS.get(self._require(obj, 'kind', 'type'))
        if kind is None:
            raise IRFormatError(f"unknown type kind {obj['kind']!r}")
        return TypeRef(
            kind,
            name=obj.get('name'),
            elem=self.type(obj.get('elem')),
            key=self.type(obj.get('key')),
            fields=[(name, self.type(t)) for name, t in obj.get('fields', [])],
            type_args=[self.type(t) for t in obj.get('type_args', [])],
            pointer=bool(obj.get('pointer', False)),
        )

    # -- declarations -------------------------------------------------------

    def _decl(self, obj: Dict[str, Any]) -> Decl:
        kind = self._require(obj, 'kind', 'declaration')
        name = self._require(obj, 'name', f'{kind} declaration')
        pos = self._pos(obj)
        if kind == 'func':
            body = obj.get('body')
            recv = obj.get('receiver')
            return FuncDecl(
                name,
                params=[self._param(p) for p in obj.get('params', [])],
                results=[self.type(t) for t in obj.get('results', [])],
                body=self._block(body) if body is not None else None,
                receiver=self._param(recv) if recv is not None else None,
                type_params=list(obj.get('type_params', [])),
                syscall=obj.get('syscall'),
                pos=pos)
        if kind == 'var':
            return GlobalDecl(name, self._opt_expr(obj.get('value')),
                              self.type(obj.get('type')), pos=pos)
        if kind == 'const':
            return ConstDecl(name, self.expr(self._require(obj, 'value', 'const declaration')),
                             self.type(obj.get('type')), pos=pos)
        if kind == 'type':
            return TypeDecl(name, self.type(self._require(obj, 'type', 'type declaration')),
                            list(obj.get('type_params', [])), pos=pos)
        raise IRFormatError(f"unknown declaration kind {kind!r}")

    def _param(self, obj: Dict[str, Any]) -> Param:
        return Param(obj.get('name'), self.type(obj.get('type', 'any')))

    # -- statements ---------------------------------------------------------

    def _block(self, obj: Any) -> BlockStmt:
        if isinstance(obj, list):
            return BlockStmt([self.stmt(s) for s in obj])
        if obj.get('kind', 'block') != 'block':
            raise IRFormatError(f"expected block, got {obj.get('kind')!r}")
        return BlockStmt([self.stmt(s) for s in obj.get('stmts', [])], pos=self._pos(obj))

    def _opt_stmt(self, obj: Any) -> Optional[Stmt]:
        return self.stmt(obj) if obj is not None else None

    def stmt(self, obj: Dict[str, Any]) -> Stmt:
        kind = self._require(obj, 'kind', 'statement')
        pos = self._pos(obj)
        if kind == 'block':
            return self._block(obj)
        if kind == 'expr':
            return ExprStmt(self.expr(self._require(obj, 'x', 'expression statement')), pos=pos)
        if kind == 'assign':
            return AssignStmt(self.expr(self._require(obj, 'target', 'assignment')),
                              self._opt_expr(obj.get('value')),
                              define=bool(obj.get('define', False)),
                              type=self.type(obj.get('type')), pos=pos)
        if kind == 'return':
            return ReturnStmt(self._opt_expr(obj.get('value')), pos=pos)
        if kind == 'if':
            return IfStmt(self.expr(self._require(obj, 'cond', 'if statement')),
                          self._block(self._require(obj, 'body', 'if statement')),
                          self._opt_stmt(obj.get('else')), pos=pos)
        if kind == 'for':
            return ForStmt(self._opt_stmt(obj.get('init')), self._opt_expr(obj.get('cond')),
                           self._opt_stmt(obj.get('post')),
                           self._block(self._require(obj, 'body', 'for statement')), pos=pos)
        if kind == 'branch':
            tok = self._require(obj, 'tok', 'branch statement')
            if tok not in ('break', 'continue'):
                raise IRFormatError(f"unknown branch {tok!r}")
            return BranchStmt(tok, pos=pos)
        if kind == 'defer':
            call = self.expr(self._require(obj, 'call', 'defer statement'))
            if not isinstance(call, CallExpr):
                raise IRFormatError("defer requires a call expression")
            return DeferStmt(call, pos=pos)
        raise IRFormatError(f"unknown statement kind {kind!r}")

    # -- expressions --------------------------------------------------------

    def _opt_expr(self, obj: Any) -> Optional[Expr]:
        return self.expr(obj) if obj is not None else None

    def _exprs(self, objs: List[Any]) -> List[Expr]:
        return [self.expr(o) for o in objs]

    def expr(self, obj: Dict[str, Any]) -> Expr:
        kind = self._require(obj, 'kind', 'expression')
        pos = self._pos(obj)
        typ = self.type(obj.get('type'))
        if kind == 'lit':
            if 'bytes' in obj:
                try:
                    value = bytes.fromhex(obj['bytes'])
                except (TypeError, ValueError):
                    raise IRFormatError(f"bad hex literal {obj['bytes']!r}")
            else:
                value = obj.get('value')
            return Literal(value, typ, pos=pos)
        if kind == 'ident':
            return Ident(self._require(obj, 'name', 'identifier'), typ, pos=pos)
        if kind == 'selector':
            return SelectorExpr(self.expr(self._require(obj, 'x', 'selector')),
                                self._require(obj, 'sel', 'selector'),
                                is_selection=bool(obj.get('selection', False)),
                                method=obj.get('method'), type=typ, pos=pos)
        if kind == 'call':
            return CallExpr(self.expr(self._require(obj, 'fun', 'call')),
                            self._exprs(obj.get('args', [])), typ, pos=pos)
        if kind == 'composite':
            if typ is None:
                raise IRFormatError("composite literal requires a type")
            return CompositeLit(typ, self._exprs(obj.get('elts', [])), pos=pos)
        if kind == 'kv':
            return KeyValueExpr(self.expr(self._require(obj, 'key', 'key/value')),
                                self.expr(self._require(obj, 'value', 'key/value')), pos=pos)
        if kind == 'binary':
            return BinaryExpr(self._require(obj, 'op', 'binary expression'),
                              self.expr(self._require(obj, 'x', 'binary expression')),
                              self.expr(self._require(obj, 'y', 'binary expression')),
                              typ, pos=pos)
        if kind == 'unary':
            return UnaryExpr(self._require(obj, 'op', 'unary expression'),
                             self.expr(self._require(obj, 'x', 'unary expression')),
                             typ, pos=pos)
        if kind == 'index':
            return IndexExpr(self.expr(self._require(obj, 'x', 'index expression')),
                             self.expr(self._require(obj, 'index', 'index expression')),
                             typ, pos=pos)
        raise IRFormatError(f"unknown expression kind {kind!r}")


def load_file(path: str) -> Program:
    """Read and decode an IR document from disk."""
    with open(path, 'r', encoding='utf-8') as f:
        try:
            doc = json.load(f)
        except json.JSONDecodeError as e:
            raise IRFormatError(f"{path}: {e}")
    return IRLoader().load(doc)

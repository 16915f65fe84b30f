"""
Debug metadata - method descriptors, events and the debug document.

Built after the script is finalized from the per-function records the
planner collected during emission.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any

from ..ir.nodes import Program as IRProgram, TypeRef
from ..analysis.reachability import Reachability
from ..codegen.planner import CodePlan, INITIALIZE_METHOD, DEPLOY_METHOD
from ..codegen.emitter import FunctionRecord, SequencePoint
from ..vm.disasm import iter_instructions
from ..vm.opcodes import Opcode
from ..errors import InternalCompilerError
from .types import ParamType, StackItemType, sc_and_vm_types


@dataclass
class DebugParam:
    """A named, typed value: parameter, local or static variable."""
    name: str
    type: str
    type_sc: ParamType = ParamType.ANY

    @classmethod
    def from_type(cls, name: str, typ: Optional[TypeRef]) -> 'DebugParam':
        sc, vm = sc_and_vm_types(typ)
        return cls(name, str(vm), sc)

    def __str__(self):
        return f"{self.name},{self.type}"

    def to_manifest_parameter(self) -> Dict[str, str]:
        return {'name': self.name, 'type': str(self.type_sc)}


def format_seq_point(sp: SequencePoint) -> str:
    return (f"{sp.opcode}[{sp.document}]{sp.start_line}:{sp.start_col}"
            f"-{sp.end_line}:{sp.end_col}")


@dataclass
class MethodDebugInfo:
    """
    Debug descriptor of one method.

    `id` is the declared name; `name` has its first letter lowercased as
    manifests expect. The range is inclusive and ends on the RET.
    """
    id: str
    name: str
    namespace: str
    start: int
    end: int
    is_exported: bool = True
    is_function: bool = True
    parameters: List[DebugParam] = field(default_factory=list)
    return_type: str = 'Void'
    return_type_sc: ParamType = ParamType.VOID
    variables: List[str] = field(default_factory=list)
    seq_points: List[SequencePoint] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': f"{self.namespace},{self.name}",
            'range': f"{self.start}-{self.end}",
            'params': [str(p) for p in self.parameters],
            'return': self.return_type,
            'variables': list(self.variables),
            'sequence-points': [format_seq_point(sp) for sp in self.seq_points],
        }

    def to_manifest_method(self) -> Dict[str, Any]:
        """ABI view of the method for the manifest generator."""
        return {
            'name': self.name,
            'offset': self.start,
            'parameters': [p.to_manifest_parameter() for p in self.parameters],
            'returntype': str(self.return_type_sc),
        }


@dataclass
class EventDebugInfo:
    id: str
    name: str
    parameters: List[DebugParam] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'name': self.name,
                'params': [str(p) for p in self.parameters]}


@dataclass
class DebugInfo:
    """The debug document of a compiled script."""
    documents: List[str] = field(default_factory=list)
    methods: List[MethodDebugInfo] = field(default_factory=list)
    events: List[EventDebugInfo] = field(default_factory=list)
    static_variables: List[str] = field(default_factory=list)

    def get_method(self, id: str) -> Optional[MethodDebugInfo]:
        for m in self.methods:
            if m.id == id:
                return m
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'documents': list(self.documents),
            'methods': [m.to_dict() for m in self.methods],
            'events': [e.to_dict() for e in self.events],
            'static-variables': list(self.static_variables),
        }


def lower_first(name: str) -> str:
    return name[:1].lower() + name[1:]


class DebugInfoBuilder:
    """Turns emission records into a DebugInfo."""

    def __init__(self, program: IRProgram, reach: Reachability):
        self.program = program
        self.reach = reach

    def build(self, script: bytes, plan: CodePlan, documents: List[str]) -> DebugInfo:
        """
        Build the debug document.

        Raises:
            InternalCompilerError: If a method range does not end on RET
        """
        namespace = self.program.root_module.name
        info = DebugInfo(documents=list(documents))

        if plan.initialize is not None:
            info.methods.append(self._synthetic(INITIALIZE_METHOD, namespace, plan.initialize, []))
        if plan.deploy is not None:
            params = [DebugParam('data', str(StackItemType.ANY), ParamType.ANY),
                      DebugParam('isUpdate', str(StackItemType.BOOLEAN), ParamType.BOOLEAN)]
            info.methods.append(self._synthetic(DEPLOY_METHOD, namespace, plan.deploy, params))

        for record in sorted(plan.functions, key=lambda r: r.name):
            if record.is_empty:
                continue
            info.methods.append(self._method(record))

        for name, types in plan.events.items():
            info.events.append(EventDebugInfo(
                name, f"{namespace},{name}",
                [DebugParam.from_type(f"arg{i + 1}", t) for i, t in enumerate(types)]))

        for qualified, _ in plan.slots:
            decl = self.reach.globals[qualified].decl
            info.static_variables.append(str(DebugParam.from_type(decl.name, decl.type)))

        check_ranges(script, info.methods)
        return info

    def _synthetic(self, name: str, namespace: str, record: FunctionRecord,
                   params: List[DebugParam]) -> MethodDebugInfo:
        return MethodDebugInfo(
            id=name, name=name, namespace=namespace,
            start=record.start, end=record.end,
            parameters=params,
            variables=[str(DebugParam.from_type(n, t)) for n, t in record.variables],
            seq_points=list(record.seq_points))

    def _method(self, record: FunctionRecord) -> MethodDebugInfo:
        decl = record.decl
        params = []
        if decl.receiver is not None and decl.receiver.name:
            params.append(DebugParam.from_type(decl.receiver.name, decl.receiver.type))
        params.extend(DebugParam.from_type(p.name or '_', p.type) for p in decl.params)

        if not decl.results:
            ret_sc, ret = ParamType.VOID, 'Void'
        elif len(decl.results) == 1:
            sc, vm = sc_and_vm_types(decl.results[0])
            ret_sc, ret = sc, str(vm)
        else:
            ret_sc, ret = ParamType.ANY, 'Any'

        return MethodDebugInfo(
            id=decl.name,
            name=lower_first(decl.name),
            namespace=self.program.modules[record.module].name,
            start=record.start, end=record.end,
            is_exported=decl.is_exported,
            is_function=decl.receiver is None,
            parameters=params,
            return_type=ret, return_type_sc=ret_sc,
            variables=[str(DebugParam.from_type(n, t)) for n, t in record.variables],
            seq_points=list(record.seq_points))


def check_ranges(script: bytes, methods: List[MethodDebugInfo]):
    """Assert that every method range ends on a RET instruction."""
    ret_offsets = {ins.offset for ins in iter_instructions(script) if ins.opcode == Opcode.RET}
    for m in methods:
        if m.end not in ret_offsets:
            raise InternalCompilerError(
                f"method {m.id} range {m.start}-{m.end} does not end on RET")

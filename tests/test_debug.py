"""Tests for debug and ABI metadata."""

import pytest

from contractc.debug import (
    ParamType, StackItemType, sc_and_vm_types, MethodDebugInfo, DebugParam, check_ranges,
)
from contractc.ir.nodes import INT, BOOL, STRING, BYTES, ANY, Param
from contractc.errors import InternalCompilerError
from .conftest import (
    ProgramBuilder, AssertProgram, lit, ident, sel, call, ret, expr, define, p,
    struct, interop, array_of, map_of,
)


def compiled(builder):
    return AssertProgram(builder).compiles()


class TestTypeMapping:
    @pytest.mark.parametrize("typ,sc,vm", [
        (INT, ParamType.INTEGER, StackItemType.INTEGER),
        (BOOL, ParamType.BOOLEAN, StackItemType.BOOLEAN),
        (STRING, ParamType.STRING, StackItemType.BYTE_STRING),
        (BYTES, ParamType.BYTE_ARRAY, StackItemType.BYTE_STRING),
        (ANY, ParamType.ANY, StackItemType.ANY),
        (None, ParamType.ANY, StackItemType.ANY),
    ])
    def test_basic_types(self, typ, sc, vm):
        assert sc_and_vm_types(typ) == (sc, vm)

    def test_collections(self):
        assert sc_and_vm_types(array_of(INT)) == (ParamType.ARRAY, StackItemType.ARRAY)
        assert sc_and_vm_types(map_of(STRING, INT)) == (ParamType.MAP, StackItemType.MAP)
        assert sc_and_vm_types(struct('Point')) == (ParamType.ARRAY, StackItemType.STRUCT)

    def test_hash_and_key_types(self):
        assert sc_and_vm_types(interop('interop.Hash160')) == \
            (ParamType.HASH160, StackItemType.BYTE_STRING)
        assert sc_and_vm_types(interop('interop.PublicKey')) == \
            (ParamType.PUBLIC_KEY, StackItemType.BYTE_STRING)
        assert sc_and_vm_types(interop('interop.Signature'))[0] == ParamType.SIGNATURE

    def test_ledger_types(self):
        assert sc_and_vm_types(interop('ledger.Block')) == (ParamType.ARRAY, StackItemType.ARRAY)
        assert sc_and_vm_types(interop('native/ledger.VMState')) == \
            (ParamType.INTEGER, StackItemType.INTEGER)

    def test_opaque_handles(self):
        assert sc_and_vm_types(interop('iterator.Iterator')) == \
            (ParamType.INTEROP_INTERFACE, StackItemType.INTEROP_INTERFACE)

    def test_names(self):
        assert str(ParamType.BYTE_ARRAY) == 'ByteArray'
        assert str(ParamType.VOID) == 'Void'
        assert str(StackItemType.BYTE_STRING) == 'ByteString'


class TestMethods:
    """Method descriptors built from emitted functions."""

    def test_methods_sorted_by_qualified_name(self):
        result = compiled(ProgramBuilder().module('main').imports(util='util')
                          .func('Main', body=[expr(call('helper')), expr(call(sel('util', 'Get')))])
                          .func('helper', body=[])
                          .func('dead', body=[])
                          .module('util')
                          .func('Get', results=[INT], body=[ret(lit(1))]))
        info = result.debug_info
        assert [m.id for m in info.methods] == ['Main', 'helper', 'Get']
        assert [m.to_dict()['name'] for m in info.methods] == ['main,main', 'main,helper', 'util,get']
        assert info.get_method('dead') is None

    def test_method_dict(self):
        result = compiled(ProgramBuilder().module('main')
                          .func('Main', params=[p('amount')], results=[BOOL], body=[
                              define('x', ident('amount', INT), line=3),
                              ret(lit(True), line=4)]))
        m = result.debug_info.get_method('Main').to_dict()
        assert m['id'] == 'Main'
        assert m['range'] == '0-8'
        assert m['params'] == ['amount,Integer']
        assert m['return'] == 'Boolean'
        assert m['variables'] == ['x,Integer']
        assert m['sequence-points'] == ['3[0]3:1-3:10', '7[0]4:1-4:10']

    def test_range_ends_on_ret(self):
        result = compiled(ProgramBuilder().module('main')
                          .var('x', lit(1))
                          .func('Main', results=[INT], body=[ret(ident('x'))]))
        ranges = [m.to_dict()['range'] for m in result.debug_info.methods]
        assert ranges == ['0-8', '9-11']
        for m in result.debug_info.methods:
            assert result.bytecode[m.end] == 0x66

    def test_exported_and_function_flags(self):
        point = struct('Point', ('x', INT))
        result = compiled(ProgramBuilder().module('main')
                          .func('Main', body=[expr(call('helper'))])
                          .func('helper', body=[])
                          .func('Get', receiver=Param('pt', point), results=[INT],
                                body=[ret(lit(0))]))
        main = result.debug_info.get_method('Main')
        helper = result.debug_info.get_method('helper')
        get = result.debug_info.get_method('Get')
        assert main.is_exported and main.is_function
        assert not helper.is_exported
        assert not get.is_function

    def test_void_return(self):
        result = compiled(ProgramBuilder().module('main')
                          .func('Main', body=[]))
        assert result.debug_info.get_method('Main').to_dict()['return'] == 'Void'

    def test_manifest_method(self):
        hash160 = interop('interop.Hash160')
        result = compiled(ProgramBuilder().module('main')
                          .func('Transfer', params=[p('from', hash160), p('amount')],
                                results=[BOOL], body=[ret(lit(True))]))
        assert result.debug_info.get_method('Transfer').to_manifest_method() == {
            'name': 'transfer',
            'offset': 0,
            'parameters': [{'name': 'from', 'type': 'Hash160'},
                           {'name': 'amount', 'type': 'Integer'}],
            'returntype': 'Boolean',
        }


class TestSyntheticMethods:
    def test_initialize_descriptor(self):
        result = compiled(ProgramBuilder().module('main')
                          .var('x', lit(1))
                          .func('Main', results=[INT], body=[ret(ident('x'))]))
        init = result.debug_info.methods[0]
        assert init.id == '_initialize'
        d = init.to_dict()
        assert d['name'] == 'main,_initialize'
        assert d['params'] == []
        assert d['return'] == 'Void'
        # The global declaration is on line 1 of document 0.
        assert d['sequence-points'] == ['5[0]1:1-1:20']

    def test_deploy_descriptor(self):
        result = compiled(ProgramBuilder().module('main')
                          .func('_deploy', params=[p('data', ANY), p('isUpdate', BOOL)],
                                body=[])
                          .func('Main', body=[]))
        deploy = result.debug_info.methods[0]
        assert deploy.id == '_deploy'
        assert deploy.to_dict()['params'] == ['data,Any', 'isUpdate,Boolean']
        assert deploy.to_manifest_method()['returntype'] == 'Void'

    def test_deploy_locals(self):
        result = compiled(ProgramBuilder().module('main')
                          .func('_deploy', params=[p('data', ANY), p('isUpdate', BOOL)],
                                body=[define('x', lit(5))])
                          .func('Main', body=[]))
        assert result.debug_info.get_method('_deploy').to_dict()['variables'] == ['x,Integer']

    def test_initialize_locals_of_every_init(self):
        result = compiled(ProgramBuilder().module('main')
                          .func('init', body=[define('a', lit(2))])
                          .func('init', body=[define('ready', lit(True))])
                          .func('Main', body=[]))
        init = result.debug_info.methods[0]
        assert init.id == '_initialize'
        assert init.to_dict()['variables'] == ['a,Integer', 'ready,Boolean']

    def test_initialize_precedes_deploy(self):
        result = compiled(ProgramBuilder().module('main')
                          .var('x', lit(1))
                          .func('_deploy', params=[p('data', ANY), p('isUpdate', BOOL)],
                                body=[expr(ident('x'))])
                          .func('Main', body=[]))
        ids = [m.id for m in result.debug_info.methods]
        assert ids == ['_initialize', '_deploy', 'Main']


class TestDocument:
    def test_documents_follow_module_order(self):
        result = compiled(ProgramBuilder().module('main').imports(util='util')
                          .func('Main', results=[INT], body=[ret(call(sel('util', 'Get')))])
                          .module('util')
                          .func('Get', results=[INT], body=[ret(lit(1), line=9)]))
        info = result.debug_info
        assert info.documents == ['util/util.go', 'main/main.go']
        assert info.get_method('Get').to_dict()['sequence-points'][0].startswith('0[0]9:')

    def test_static_variables(self):
        hash160 = interop('interop.Hash160')
        result = compiled(ProgramBuilder().module('main')
                          .var('counter', lit(0))
                          .var('owner', None, hash160)
                          .var('unused', lit(3))
                          .func('Main', body=[expr(ident('counter')), expr(ident('owner'))]))
        assert result.debug_info.static_variables == ['counter,Integer', 'owner,ByteString']

    def test_events(self):
        result = compiled(ProgramBuilder().module('main')
                          .func('notify', params=[p('name', STRING), p('args', ANY)],
                                syscall='System.Runtime.Notify')
                          .func('Main', params=[p('who', STRING)], body=[
                              expr(call('notify', lit('Transfer'), lit(1), lit(b'\x01'))),
                              expr(call('notify', ident('who', STRING), lit(2))),
                              expr(call('notify', lit('Transfer'), lit(3), lit(b'\x02')))]))
        events = [e.to_dict() for e in result.debug_info.events]
        assert events == [{
            'id': 'Transfer',
            'name': 'main,Transfer',
            'params': ['arg1,Integer', 'arg2,ByteString'],
        }]

    def test_to_dict_keys(self):
        result = compiled(ProgramBuilder().module('main')
                          .func('Main', body=[]))
        assert list(result.debug_info.to_dict()) == \
            ['documents', 'methods', 'events', 'static-variables']


class TestRangeCheck:
    def test_range_must_end_on_ret(self):
        script = bytes([0x51, 0x66])
        check_ranges(script, [MethodDebugInfo('f', 'f', 'main', 0, 1)])
        with pytest.raises(InternalCompilerError):
            check_ranges(script, [MethodDebugInfo('f', 'f', 'main', 0, 0)])

    def test_debug_param(self):
        param = DebugParam.from_type('owner', interop('interop.Hash160'))
        assert str(param) == 'owner,ByteString'
        assert param.to_manifest_parameter() == {'name': 'owner', 'type': 'Hash160'}

"""End-to-end compiler tests: whole-program properties, files and the CLI."""

import json
import sys

import pytest

from contractc.compiler import ContractCompiler, main
from contractc.ir.nodes import INT, BOOL, BYTES, ANY, Param
from contractc.vm.disasm import disassemble
from contractc.errors import (
    ImportCycleError, MissingParamNameError, GenericsUnsupportedError, InvalidSyscallError,
)
from .conftest import (
    ProgramBuilder, AssertProgram, compile_ir, lit, ident, sel, call, ret, expr, define,
    defer, p, op_names,
)


def token_program():
    """A small two-module contract used by several tests."""
    return (ProgramBuilder().module('main').imports(store='lib/store')
            .var('owner', lit(b'\x01' * 20))
            .var('unusedFlag', lit(True))
            .func('init', body=[expr(call(sel('store', 'Reset')))])
            .func('_deploy', params=[p('data', ANY), p('isUpdate', BOOL)],
                  body=[expr(call(sel('store', 'Put'), ident('data')))])
            .func('Balance', results=[INT], body=[ret(call(sel('store', 'Get'), type=INT))])
            .func('Owner', results=[BYTES], body=[ret(ident('owner'))])
            .func('Transfer', params=[p('amount')], results=[BOOL], body=[
                defer(call('audit')),
                expr(call(sel('store', 'Put'), ident('amount'))),
                ret(lit(True))])
            .func('audit', body=[])
            .func('forgotten', body=[expr(call('alsoForgotten'))])
            .func('alsoForgotten', body=[])
            .module('lib/store', 'store')
            .var('value', lit(0))
            .var('calls', lit(0))
            .func('Reset', body=[expr(call('touch'))])
            .func('Put', params=[p('v')], body=[define('x', ident('v'))])
            .func('Get', results=[INT], body=[ret(ident('value'))])
            .func('touch', body=[]))


class TestWholeProgram:
    def test_compiles(self):
        result = AssertProgram(token_program()).compiles()
        ids = [m.id for m in result.debug_info.methods]
        assert ids[:2] == ['_initialize', '_deploy']
        assert set(ids[2:]) == {'Balance', 'Owner', 'Transfer', 'audit', 'Get', 'Put',
                                'Reset', 'touch'}

    def test_deterministic(self):
        first = compile_ir(token_program().build())
        second = compile_ir(token_program().build())
        assert first.bytecode == second.bytecode
        assert first.debug_info.to_dict() == second.debug_info.to_dict()

    def test_dead_code_contributes_nothing(self):
        result = compile_ir(token_program().build())
        assert result.debug_info.get_method('forgotten') is None
        assert result.debug_info.get_method('alsoForgotten') is None
        covered = set()
        for m in result.debug_info.methods:
            covered.update(range(m.start, m.end + 1))
        # Every byte of the script belongs to some method.
        assert covered == set(range(len(result.bytecode)))

    def test_every_jump_lands_on_an_instruction(self):
        result = compile_ir(token_program().build())
        script = disassemble(result.bytecode)
        offsets = {ins.offset for ins in script}
        for ins in script:
            target = ins.jump_target()
            if target is not None:
                assert target in offsets
            if ins.name == 'TRY':
                for t in ins.try_targets():
                    assert t is None or t in offsets

    def test_imported_initializers_come_first(self):
        result = compile_ir(token_program().build())
        slots = dict(result.plan.slots)
        assert slots['lib/store.value'] < slots['main.owner']
        stores = [ins.operand[0] for ins in disassemble(result.bytecode)
                  if ins.name == 'STSFLD' and ins.offset < result.debug_info.methods[0].end]
        assert stores == [slots['lib/store.value'], slots['main.owner']]

    def test_defer_adds_exactly_one_slot(self):
        with_defer = compile_ir(ProgramBuilder().module('main')
                                .var('x', lit(1))
                                .func('Main', results=[INT], body=[
                                    defer(call('cleanup')), ret(ident('x'))])
                                .func('cleanup', body=[])
                                .build())
        without = compile_ir(ProgramBuilder().module('main')
                             .var('x', lit(1))
                             .func('Main', results=[INT], body=[
                                 expr(call('cleanup')), ret(ident('x'))])
                             .func('cleanup', body=[])
                             .build())
        assert with_defer.plan.slots.total == without.plan.slots.total + 1
        assert with_defer.bytecode[:2] == bytes([0xD0, 2])
        assert without.bytecode[:2] == bytes([0xD0, 1])

    def test_static_variables_of_live_globals(self):
        result = compile_ir(token_program().build())
        assert result.debug_info.static_variables == ['value,Integer', 'owner,ByteString']


class TestWarnings:
    def test_unused_function_and_global(self):
        compiler = ContractCompiler()
        compiler.compile_program(token_program().build())
        warnings = compiler.get_warnings()
        assert "W0100: function main.forgotten is never used and was removed" in warnings
        assert "W0100: function main.alsoForgotten is never used and was removed" in warnings
        assert "W0101: global main.unusedFlag is never used and was discarded" in warnings
        assert "W0101: global lib/store.calls is never used and was discarded" in warnings

    def test_exported_root_functions_never_warn(self):
        AssertProgram(ProgramBuilder().module('main')
                      .func('Main', body=[])).without_warnings('W0100', 'W0101').compiles()

    def test_unused_exported_function_of_library_warns(self):
        AssertProgram(ProgramBuilder().module('main').imports(u='util')
                      .func('Main', body=[])
                      .module('util')
                      .func('Helper', body=[])).with_warnings('W0100').compiles()

    def test_warnings_reset_between_compilations(self):
        compiler = ContractCompiler()
        compiler.compile_program(token_program().build())
        compiler.compile_program(ProgramBuilder().module('main').func('Main', body=[]).build())
        assert compiler.get_warnings() == []


class TestFailures:
    def test_mutual_imports(self):
        builder = (ProgramBuilder().module('main').imports(a='A')
                   .func('Main', body=[])
                   .module('A').imports(b='B')
                   .module('B').imports(a='A'))
        err = AssertProgram(builder).does_not_compile(ImportCycleError)
        assert (err.importer, err.imported) == ('B', 'A')

    def test_unnamed_parameter(self):
        builder = (ProgramBuilder().module('main')
                   .func('Main', params=[p('x'), p('y'), Param(None, INT)], body=[]))
        err = AssertProgram(builder).does_not_compile(MissingParamNameError)
        assert 'Main/2' in str(err)

    def test_generics(self):
        builder = (ProgramBuilder().module('main')
                   .func('Main', body=[])
                   .func('Map', type_params=['T'], body=[]))
        AssertProgram(builder).does_not_compile(GenericsUnsupportedError)

    def test_empty_syscall(self):
        builder = (ProgramBuilder().module('main')
                   .func('broken', syscall='')
                   .func('Main', body=[expr(call('broken'))]))
        AssertProgram(builder).does_not_compile(InvalidSyscallError)


def write_program(tmp_path, doc):
    path = tmp_path / 'contract.json'
    path.write_text(json.dumps(doc))
    return path


SIMPLE_DOC = {
    'root': 'example.com/token',
    'modules': [{
        'path': 'example.com/token',
        'name': 'token',
        'files': [{'path': 'token.go', 'decls': [
            {'kind': 'var', 'name': 'supply', 'pos': [3, 5, 3, 20],
             'value': {'kind': 'lit', 'value': 1000}},
            {'kind': 'func', 'name': 'TotalSupply', 'results': ['int'], 'body': [
                {'kind': 'return', 'pos': [6, 2, 6, 15],
                 'value': {'kind': 'ident', 'name': 'supply', 'type': 'int'}}]},
        ]}],
    }],
}


def simple_doc():
    return json.loads(json.dumps(SIMPLE_DOC))


class TestCompileFile:
    def test_writes_script_next_to_input(self, tmp_path):
        src = write_program(tmp_path, simple_doc())
        assert ContractCompiler().compile_file(str(src))
        script = (tmp_path / 'contract.bin').read_bytes()
        assert op_names(script) == [
            'INITSSLOT', 'INITSLOT', 'PUSHBYTES2', 'STSFLD', 'RET', 'LDSFLD', 'RET']

    def test_debug_document(self, tmp_path):
        src = write_program(tmp_path, simple_doc())
        out = tmp_path / 'out.bin'
        dbg = tmp_path / 'out.debug.json'
        assert ContractCompiler().compile_file(str(src), str(out), str(dbg))
        debug = json.loads(dbg.read_text())
        assert debug['documents'] == ['token.go']
        assert debug['static-variables'] == ['supply,Integer']
        total = [m for m in debug['methods'] if m['id'] == 'TotalSupply'][0]
        assert total['name'] == 'token,totalSupply'
        assert total['return'] == 'Integer'
        assert total['sequence-points'] == ['11[0]6:2-6:15']

    def test_missing_file(self, tmp_path, capsys):
        assert not ContractCompiler().compile_file(str(tmp_path / 'nope.json'))
        assert 'File not found' in capsys.readouterr().err

    def test_compile_error_writes_nothing(self, tmp_path, capsys):
        doc = simple_doc()
        doc['modules'][0]['files'][0]['decls'].append(
            {'kind': 'func', 'name': 'Bad', 'results': ['int', 'int'], 'body': []})
        src = write_program(tmp_path, doc)
        assert not ContractCompiler().compile_file(str(src))
        assert 'Compilation error' in capsys.readouterr().err
        assert not (tmp_path / 'contract.bin').exists()

    def test_malformed_document(self, tmp_path, capsys):
        src = write_program(tmp_path, {'modules': []})
        assert not ContractCompiler().compile_file(str(src))
        assert 'Compilation error' in capsys.readouterr().err

    def test_verbose_logging(self, tmp_path, capsys):
        src = write_program(tmp_path, simple_doc())
        assert ContractCompiler(verbose=True).compile_file(str(src))
        captured = capsys.readouterr()
        assert '[contractc] Module order: example.com/token' in captured.err
        assert '[reach]' in captured.err
        assert captured.out == ''


class TestCommandLine:
    def test_success_exit_code(self, tmp_path, monkeypatch):
        src = write_program(tmp_path, simple_doc())
        out = tmp_path / 'cli.bin'
        monkeypatch.setattr(sys, 'argv', ['contractc', str(src), '-o', str(out)])
        with pytest.raises(SystemExit) as info:
            main()
        assert info.value.code == 0
        assert out.exists()

    def test_failure_exit_code(self, tmp_path, monkeypatch):
        monkeypatch.setattr(sys, 'argv', ['contractc', str(tmp_path / 'missing.json')])
        with pytest.raises(SystemExit) as info:
            main()
        assert info.value.code == 1

"""
Pytest configuration and fixtures for Eva compiler tests.

Provides reusable fixtures for:
- Evaluating Eva programs in-process through the LLVM JIT
- Generating IR without running it
- Running the compiler driver and checking its output or errors
"""

import ctypes
import os
import subprocess
import sys
import tempfile
from pathlib import Path

import pytest
from llvmlite import binding, ir

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from codegen import CodeGenerator
from codegen.types import BOOL, INT32
from eva_parser import parse


PROBE_NAME = "__probe"


class CompilerResult:
    """Result of running the Eva compiler driver."""

    def __init__(self, compile_success: bool, compile_output: str,
                 ir: str = None, output_data: bytes = None):
        self.compile_success = compile_success
        self.compile_output = compile_output
        self.ir = ir
        self.output_data = output_data


def run_jit(codegen: CodeGenerator, value: ir.Value):
    """
    Store value into a probe global, finalize, execute main and read the probe.

    Returns (main's return code, probe value as a Python object).
    """
    probe = ir.GlobalVariable(codegen.module, value.type, name=PROBE_NAME)
    probe.initializer = ir.Constant(value.type, None)
    codegen.builder.store(value, probe)
    codegen.finalize()

    llvm_mod = binding.parse_assembly(codegen.get_ir())
    target_machine = binding.Target.from_default_triple().create_target_machine()
    engine = binding.create_mcjit_compiler(llvm_mod, target_machine)
    engine.finalize_object()

    main = ctypes.CFUNCTYPE(ctypes.c_int32)(engine.get_function_address("main"))
    exit_code = main()

    address = engine.get_global_value_address(PROBE_NAME)
    if value.type == INT32:
        result = ctypes.c_int32.from_address(address).value
    elif value.type == BOOL:
        result = bool(ctypes.c_uint8.from_address(address).value & 1)
    else:
        result = ctypes.c_char_p.from_address(address).value.decode("utf8")
    return exit_code, result


@pytest.fixture
def compiler_root():
    """Path to compiler root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def generate():
    """
    Fixture that compiles Eva source in-process without finalizing.

    Usage:
        codegen, value = generate("(+ 1 2)")
        assert value.opname == "add"
    """
    def _generate(source: str, **kwargs):
        codegen = CodeGenerator(**kwargs)
        value = codegen.compile(parse(source))
        return codegen, value

    return _generate


@pytest.fixture
def evaluate():
    """
    Fixture that compiles and JIT-runs Eva source, returning the value of
    the last top-level expression.

    Usage:
        assert evaluate("(var x 10) (set x 20) x") == 20
    """
    def _evaluate(source: str, **kwargs):
        codegen = CodeGenerator(**kwargs)
        value = codegen.compile(parse(source))
        exit_code, result = run_jit(codegen, value)
        assert exit_code == 0
        return result

    return _evaluate


@pytest.fixture
def compile_eva(compiler_root):
    """
    Fixture that returns a function to run the compiler driver on source code.

    Usage:
        result = compile_eva(source_code)
        assert result.compile_success
        assert '@"printf"' in result.ir
    """
    def _compile(source: str, emit_ir: bool = True, output: str = None,
                 extra_args=()) -> CompilerResult:
        with tempfile.TemporaryDirectory() as tmpdir:
            source_path = os.path.join(tmpdir, "test.eva")
            with open(source_path, 'w') as f:
                f.write(source)

            evac = os.path.join(compiler_root, "evac.py")
            cmd = [sys.executable, evac, source_path, *extra_args]
            output_path = None
            if emit_ir:
                cmd.append("--emit-ir")
            else:
                output_path = os.path.join(tmpdir, output or "test.ll")
                cmd.extend(["-o", output_path])

            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                cwd=compiler_root
            )

            compile_success = result.returncode == 0
            compile_output = result.stdout + result.stderr

            if emit_ir:
                return CompilerResult(compile_success, compile_output, ir=result.stdout)

            written = None
            if output_path and os.path.exists(output_path):
                with open(output_path, 'rb') as f:
                    written = f.read()
            return CompilerResult(compile_success, compile_output,
                                  output_data=written)

    return _compile


@pytest.fixture
def expect_compile_error(compile_eva):
    """
    Fixture that verifies compilation fails with expected error.

    Usage:
        expect_compile_error(bad_code, "Undeclared identifier")
    """
    def _expect(source: str, error_substring: str = None):
        result = compile_eva(source)
        assert not result.compile_success, \
            f"Expected compilation to fail but it succeeded.\nOutput: {result.compile_output}"
        if error_substring:
            assert error_substring.lower() in result.compile_output.lower(), \
                f"Expected error containing '{error_substring}' but got:\n{result.compile_output}"

    return _expect

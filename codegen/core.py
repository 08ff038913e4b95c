"""
Eva LLVM Code Generator

Generates LLVM IR from an Eva AST using llvmlite. One CodeGenerator is one
compilation session: it owns the module, the `main` function, the external
declarations and the global cells, and is finalized exactly once.
"""

import os
import tempfile
from typing import Dict, Optional, Sequence

from llvmlite import ir, binding

from ast_nodes import Node
from codegen.environment import Environment
from codegen.errors import CompileError, VerificationError
from codegen.expressions import ExpressionsGenerator
from codegen.storage import StorageAllocator
from codegen.types import BYTE_PTR, INT32, INT32_MAX, INT32_MIN

try:
    binding.initialize()
except RuntimeError:
    # Newer llvmlite versions initialize the core automatically
    pass
binding.initialize_native_target()
binding.initialize_native_asmprinter()


DEFAULT_GLOBALS = {
    "VERSION": 42,
}


class CodeGenerator:
    """Generates LLVM IR from Eva AST"""

    def __init__(self, module_name: str = "EvaLLVM",
                 global_vars: Optional[Dict[str, int]] = None):
        # Create module
        self.module = ir.Module(name=module_name)
        self.module.triple = binding.get_default_triple()

        # Builder for the body of the current function
        self.builder: Optional[ir.IRBuilder] = None
        # Builder that prepends allocas to the entry block
        self.vars_builder: Optional[ir.IRBuilder] = None

        # Currently compiling function
        self.function: Optional[ir.Function] = None

        # External functions by name
        self.externals: Dict[str, ir.Function] = {}

        # String interning
        self.string_constants: Dict[str, ir.GlobalVariable] = {}

        # Set by finalize(); serialization only ever sees verified IR
        self._final_ir: Optional[str] = None
        self._verified: Optional['binding.ModuleRef'] = None

        self.storage = StorageAllocator(self)
        self.expressions = ExpressionsGenerator(self)

        # Declare external functions
        self._declare_builtins()

        # Global environment (symbol table)
        self.global_env = Environment()
        if global_vars is None:
            global_vars = DEFAULT_GLOBALS
        for name, value in global_vars.items():
            if not INT32_MIN <= value <= INT32_MAX:
                raise CompileError(f"Global '{name}' value {value} does not fit in 32 bits")
            self.storage.allocate_global(name, ir.Constant(INT32, value), self.global_env)

    def _declare_builtins(self):
        """Declare built-in functions"""
        # int printf(const char* format, ...)
        self.declare_external("printf", INT32, [BYTE_PTR], var_arg=True)

    # ========================================================================
    # Module Assembly
    # ========================================================================

    def declare_external(self, name: str, return_type: ir.Type,
                         arg_types: Sequence[ir.Type],
                         var_arg: bool = False) -> ir.Function:
        """Declare a function defined outside the program. Repeats are no-ops."""
        if name in self.externals:
            return self.externals[name]

        fn_type = ir.FunctionType(return_type, list(arg_types), var_arg=var_arg)
        fn = ir.Function(self.module, fn_type, name=name)
        self.externals[name] = fn
        return fn

    def create_entry_point(self, name: str = "main") -> ir.Function:
        """Create `i32 name()` and position the builders in its entry block."""
        if self.function is not None:
            raise CompileError(f"Entry point '{self.function.name}' already exists")
        if name in self.module.globals:
            raise CompileError(f"Entry point name '{name}' is already taken")

        fn_type = ir.FunctionType(INT32, [])
        self.function = ir.Function(self.module, fn_type, name=name)
        entry = self.function.append_basic_block(name="entry")

        self.builder = ir.IRBuilder(entry)
        self.vars_builder = ir.IRBuilder(entry)
        return self.function

    def compile(self, program: Node) -> ir.Value:
        """Generate the body of main for a program (normally a top-level begin)."""
        self.create_entry_point()
        return self.expressions.generate(program, self.global_env)

    # ========================================================================
    # String Constants
    # ========================================================================

    def _create_global_string(self, value: str) -> ir.GlobalVariable:
        """Create a global string constant"""
        # Check cache
        if value in self.string_constants:
            return self.string_constants[value]

        value_bytes = bytearray((value + "\0").encode("utf8"))
        str_type = ir.ArrayType(ir.IntType(8), len(value_bytes))
        global_str = ir.GlobalVariable(self.module, str_type,
                                       name=self.module.get_unique_name("str"))
        global_str.global_constant = True
        global_str.linkage = 'private'
        global_str.initializer = ir.Constant(str_type, value_bytes)

        self.string_constants[value] = global_str
        return global_str

    def get_string_ptr(self, value: str) -> ir.Value:
        """Get an i8* to an interned string constant"""
        global_str = self._create_global_string(value)
        return self.builder.bitcast(global_str, BYTE_PTR)

    # ========================================================================
    # Output
    # ========================================================================

    @property
    def finalized(self) -> bool:
        return self._final_ir is not None

    def finalize(self) -> str:
        """Return 0 from main and verify the module. Returns the IR text."""
        if self.finalized:
            raise CompileError("Module has already been finalized")
        if self.function is None:
            self.create_entry_point()
        # Left terminated by an earlier finalize() that failed verification
        if self.builder.block.is_terminated:
            raise CompileError("Module failed verification and cannot be finalized again")

        self.builder.ret(ir.Constant(INT32, 0))

        llvm_ir = str(self.module)
        try:
            mod = binding.parse_assembly(llvm_ir)
            mod.verify()
        except RuntimeError as e:
            raise VerificationError(f"LLVM IR error: {e}") from e

        self._verified = mod
        self._final_ir = llvm_ir
        return llvm_ir

    def get_ir(self) -> str:
        """Get LLVM IR as string"""
        if self._final_ir is not None:
            return self._final_ir
        return str(self.module)

    def serialize(self, output_path: str):
        """Write the finalized IR text to output_path"""
        self._write(output_path, self._require_final().encode("utf8"))

    def compile_to_object(self, output_path: str):
        """Compile module to object file"""
        self._require_final()
        target = binding.Target.from_default_triple()
        # Position-independent, so the default (PIE) clang link accepts it
        target_machine = target.create_target_machine(reloc="pic")
        self._write(output_path, target_machine.emit_object(self._verified))

    def _require_final(self) -> str:
        if self._final_ir is None:
            raise CompileError("Module must be finalized before it is written")
        return self._final_ir

    def _write(self, output_path: str, data: bytes):
        # Write beside the destination, then rename over it
        directory = os.path.dirname(os.path.abspath(output_path))
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp_path, output_path)
        except BaseException:
            os.unlink(tmp_path)
            raise

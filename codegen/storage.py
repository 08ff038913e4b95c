"""
Storage Module for Eva Code Generator

Every variable lives in memory: either a stack slot allocated at the top of
the entry block, or a module-level global cell. Handles carry their kind
explicitly so that loads never need to inspect the underlying LLVM value.
"""
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

from llvmlite import ir

from codegen.errors import CompileError

if TYPE_CHECKING:
    from codegen.core import CodeGenerator
    from codegen.environment import Environment


class StorageKind(Enum):
    STACK_SLOT = auto()
    GLOBAL_CELL = auto()


@dataclass(frozen=True)
class StorageHandle:
    """Where a variable lives and what it holds."""
    kind: StorageKind
    pointer: ir.Value  # AllocaInstr or GlobalVariable
    type: ir.Type      # type of the stored value
    name: str


class StorageAllocator:
    """Creates storage and installs it in an environment."""

    def __init__(self, codegen: 'CodeGenerator'):
        """Initialize with reference to parent CodeGenerator instance."""
        self.codegen = codegen

    @property
    def module(self):
        return self.codegen.module

    @property
    def vars_builder(self):
        return self.codegen.vars_builder

    def allocate_local(self, name: str, var_type: ir.Type,
                       env: 'Environment') -> StorageHandle:
        """Allocate a stack slot at the start of the entry block."""
        entry = self.codegen.function.entry_basic_block
        # Allocas precede every other instruction, whichever block asked
        self.vars_builder.position_at_start(entry)
        slot = self.vars_builder.alloca(var_type, name=name)

        # The builder anchors by index, so the insert above shifted its spot
        builder = self.codegen.builder
        builder.position_at_end(builder.block)

        handle = StorageHandle(StorageKind.STACK_SLOT, slot, var_type, name)
        return env.define(name, handle)

    def allocate_global(self, name: str, init: ir.Constant,
                        env: 'Environment') -> StorageHandle:
        """Create a mutable module-level cell with a constant initializer."""
        if name in self.module.globals:
            raise CompileError(f"Global '{name}' is already defined")

        variable = ir.GlobalVariable(self.module, init.type, name=name)
        variable.align = 4
        variable.global_constant = False
        variable.initializer = init

        handle = StorageHandle(StorageKind.GLOBAL_CELL, variable, init.type, name)
        return env.define(name, handle)

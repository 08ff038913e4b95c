"""
Eva LLVM Code Generator Package

This package generates LLVM IR from an Eva AST.

    codegen/
    ├── __init__.py      # Re-exports (this file)
    ├── core.py          # CodeGenerator: session, module, entry point, output
    ├── environment.py   # Chained lexical scopes
    ├── types.py         # Declaration targets -> LLVM types
    ├── storage.py       # Stack slots and global cells
    ├── expressions.py   # Expression generation
    └── errors.py        # Compiler exceptions
"""

from codegen.core import CodeGenerator
from codegen.environment import Environment
from codegen.errors import (
    CompileError, ParseError, UndefinedIdentifierError, MalformedFormError,
    TypeMismatchError, VerificationError
)
from codegen.storage import StorageHandle, StorageKind

__all__ = [
    'CodeGenerator', 'Environment', 'StorageHandle', 'StorageKind',
    'CompileError', 'ParseError', 'UndefinedIdentifierError',
    'MalformedFormError', 'TypeMismatchError', 'VerificationError',
]

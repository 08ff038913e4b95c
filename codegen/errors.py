"""
Compiler exceptions.

Every fault in the Eva compiler aborts compilation. The driver catches
CompileError and reports the message; anything else is an internal error.
"""


class CompileError(Exception):
    """Base exception for Eva compilation errors"""
    pass


class ParseError(CompileError):
    """Source text could not be read into an AST"""
    pass


class UndefinedIdentifierError(CompileError):
    """A name was not found in any enclosing scope"""

    def __init__(self, name: str):
        super().__init__(f"Undeclared identifier '{name}'")
        self.name = name


class MalformedFormError(CompileError):
    """A list does not match any recognized construct"""
    pass


class TypeMismatchError(CompileError):
    """Two values that must share an LLVM type do not"""
    pass


class VerificationError(CompileError):
    """LLVM rejected the finished module"""
    pass

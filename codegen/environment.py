"""
Lexical environments for the Eva code generator.

An Environment maps names to storage handles and falls back to its parent
on lookup. Each `begin` body gets a child environment, so a `var` inside a
block shadows an outer binding without touching it.
"""
from typing import TYPE_CHECKING, Dict, Optional

from codegen.errors import UndefinedIdentifierError

if TYPE_CHECKING:
    from codegen.storage import StorageHandle


class Environment:
    """A scope with an optional enclosing scope."""

    def __init__(self, record: Optional[Dict[str, 'StorageHandle']] = None,
                 parent: Optional['Environment'] = None):
        self.record: Dict[str, 'StorageHandle'] = dict(record) if record else {}
        self.parent = parent

    def define(self, name: str, handle: 'StorageHandle') -> 'StorageHandle':
        """Create (or overwrite) a binding in this scope only."""
        self.record[name] = handle
        return handle

    def lookup(self, name: str) -> 'StorageHandle':
        """Return the handle bound to name, searching outward."""
        return self.resolve(name).record[name]

    def resolve(self, name: str) -> 'Environment':
        """Return the nearest scope that binds name."""
        env = self
        while env is not None:
            if name in env.record:
                return env
            env = env.parent
        raise UndefinedIdentifierError(name)

    def child(self) -> 'Environment':
        return Environment(parent=self)

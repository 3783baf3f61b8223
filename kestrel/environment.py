from typing import Any, Dict, List, Optional
from kestrel.errors import KestrelError, UNBOUND_NAME, IMMUTABLE_BINDING
from kestrel.types import ObjectVal


class Environment:
    """Represents a scope environment mapping identifiers to values and mutability.

    Lookups that miss here fall back to the attached receiver object (if
    any) and then to each outer environment in the order they were
    appended. Function values keep their defining environment alive, which
    is what lets closures outlive the call that created them.
    """
    def __init__(self, outer: Optional['Environment'] = None):
        self.values: Dict[str, Any] = {}
        self.mutables: Dict[str, bool] = {}
        self.outers: List['Environment'] = [outer] if outer is not None else []
        self.obj: Optional[ObjectVal] = None

    def _owner(self, name: str) -> Optional['Environment']:
        if name in self.values:
            return self
        if self.obj is not None and name in self.obj.properties:
            return self
        for outer in self.outers:
            owner = outer._owner(name)
            if owner is not None:
                return owner
        return None

    def has(self, name: str) -> bool:
        return self._owner(name) is not None

    def get(self, name: str) -> Any:
        owner = self._owner(name)
        if owner is None:
            raise KestrelError(UNBOUND_NAME, f'undefined variable {name}')
        if name in owner.values:
            return owner.values[name]
        return owner.obj.properties[name]

    def initialize(self, name: str, value: Any, mutable: bool):
        self.values[name] = value
        self.mutables[name] = mutable

    def assign(self, name: str, value: Any):
        owner = self._owner(name)
        if owner is None:
            raise KestrelError(UNBOUND_NAME, f'undefined variable {name}')
        if name in owner.values:
            if not owner.mutables[name]:
                raise KestrelError(IMMUTABLE_BINDING, f'cannot assign to immutable variable {name}')
            owner.values[name] = value
        else:
            # receiver properties are always writable
            owner.obj.properties[name] = value

    def append_outer(self, outer: 'Environment'):
        self.outers.append(outer)

    def set_object(self, obj: ObjectVal):
        self.obj = obj

"""Per-session variable environment: mutable bindings over read-only built-ins."""

from __future__ import annotations

from typing import Any, Iterator, Mapping

from scratchcalc.calc._functions import BuiltinRegistry


class _Missing:
    __slots__ = ()

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


class Environment:
    """Two-layer scope used by one document session.

    Lookups try the mutable bindings first and then the built-in layer.
    Writes only ever touch the bindings, so a binding can shadow a built-in
    name without altering the built-in set itself.
    """

    __slots__ = ("bindings", "_builtins")

    def __init__(self, registry: BuiltinRegistry | None = None) -> None:
        self.bindings: dict[str, Any] = {}
        self._builtins: Mapping[str, Any] = (registry or BuiltinRegistry()).as_mapping()

    def _layers(self) -> Iterator[Mapping[str, Any]]:
        yield self.bindings
        yield self._builtins

    def get(self, name: str, default: Any = MISSING) -> Any:
        """Resolve *name*; returns *default* (``MISSING``) when no layer has it."""
        for layer in self._layers():
            if name in layer:
                return layer[name]
        return default

    def set(self, name: str, value: Any) -> None:
        self.bindings[name] = value

    def delete(self, name: str) -> bool:
        """Remove a binding. Built-ins are not affected."""
        return self.bindings.pop(name, MISSING) is not MISSING

    def clear(self) -> None:
        self.bindings.clear()

    def builtins(self) -> Mapping[str, Any]:
        return self._builtins

    def names(self) -> list[str]:
        return sorted(self.bindings)

    def snapshot(self) -> dict[str, Any]:
        return dict(self.bindings)

    def __contains__(self, name: object) -> bool:
        return any(name in layer for layer in self._layers())

    def __len__(self) -> int:
        return len(self.bindings)

    def __repr__(self) -> str:
        return f"Environment(bindings={self.bindings!r})"

from __future__ import annotations

import enum
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from ipl.kernel.types import Type, is_well_formed_type


class Absent(enum.Enum):
    """Marker returned when a name has no binding."""

    ABSENT = "absent"

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = Absent.ABSENT


def _freeze(bindings: Mapping[str, Type]) -> MappingProxyType[str, Type]:
    return MappingProxyType(dict(bindings))


@dataclass(frozen=True)
class Env:
    """
    Typing environment Γ mapping variable names to types.

    Notes:
        - Equality is mapping equality; insertion order is irrelevant.
        - Values are never mutated. ``extend`` returns a fresh environment and
          leaves ``self`` (and every sibling sharing it) untouched.
    """

    bindings: MappingProxyType[str, Type] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __post_init__(self) -> None:
        if not isinstance(self.bindings, MappingProxyType):
            object.__setattr__(self, "bindings", _freeze(self.bindings))

    # ---- lookup ----
    def lookup(self, name: str) -> Type | Absent:
        """Return the type bound to ``name`` or :data:`ABSENT`."""
        return self.bindings.get(name, ABSENT)

    def __contains__(self, name: object) -> bool:
        return name in self.bindings

    def __iter__(self) -> Iterator[str]:
        return iter(self.bindings)

    def __len__(self) -> int:
        return len(self.bindings)

    # ---- extending the environment ----
    def extend(self, name: str, ty: Type) -> Env:
        """
        Return Γ, name : ty.

        An existing binding for ``name`` is shadowed in the result only.
        """
        return Env(_freeze({**self.bindings, name: ty}))

    def is_well_formed(self, checked: set[int] | None = None) -> bool:
        """Every name is a non-empty string bound to a well-formed type.

        ``checked`` is shared with :func:`ipl.kernel.types.malformed_type_path`;
        a well-formed environment adds its own id to it.
        """
        if checked is not None and id(self) in checked:
            return True
        ok = all(
            isinstance(name, str) and bool(name) and is_well_formed_type(ty, checked)
            for name, ty in self.bindings.items()
        )
        if ok and checked is not None:
            checked.add(id(self))
        return ok

    @staticmethod
    def of(*pairs: tuple[str, Type], **named: Type) -> Env:
        """
        Build an environment from ``(name, type)`` pairs and keywords.

        Example:
            Env.of(("x", P), y=Q) binds both x and y.
        """
        bindings: dict[str, Type] = dict(pairs)
        bindings.update(named)
        return Env(_freeze(bindings))

    def __hash__(self) -> int:
        return hash(frozenset(self.bindings.items()))

    def __str__(self) -> str:
        from ipl.kernel.pretty import show_env

        return show_env(self)


__all__ = ["ABSENT", "Absent", "Env"]

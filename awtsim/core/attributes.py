"""Attribute sets used for request requirements and server capabilities."""

from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Union

from .errors import ConfigurationError


@dataclass(frozen=True)
class Attribute:
    """Opaque capability tag.

    Two attributes are the same only if both name and level are equal.
    """
    name: str
    level: Optional[int] = None

    def __str__(self) -> str:
        if self.level is None:
            return self.name
        return f"{self.name}:{self.level}"

    @classmethod
    def coerce(cls, value: Union["Attribute", str, Mapping[str, Any]]) -> "Attribute":
        """Build an attribute from a string, a ``{name, level}`` mapping or an attribute."""
        if isinstance(value, Attribute):
            return value
        if isinstance(value, str):
            return cls(value)
        if isinstance(value, Mapping):
            if 'name' not in value:
                raise ConfigurationError(f"Attribute mapping requires a name: {dict(value)}")
            level = value.get('level')
            if level is not None and (isinstance(level, bool) or not isinstance(level, int)):
                raise ConfigurationError(f"Attribute level must be an integer: {dict(value)}")
            return cls(str(value['name']), level)
        raise ConfigurationError(f"Cannot interpret {value!r} as an attribute")


class AttributeSet(frozenset):
    """Immutable set of attributes with a binary subset-match test."""

    @classmethod
    def of(cls, *values) -> "AttributeSet":
        """Build a set from attributes, names or ``{name, level}`` mappings."""
        return cls(Attribute.coerce(v) for v in values)

    @classmethod
    def from_config(cls, values: Optional[Iterable]) -> "AttributeSet":
        """Build a set from a configuration list (None means empty)."""
        if values is None:
            return cls()
        if isinstance(values, (str, Mapping)):
            raise ConfigurationError(f"Attributes must be given as a list, got {values!r}")
        return cls.of(*values)

    def is_subset_of(self, other: Iterable[Attribute]) -> bool:
        """True iff every attribute of this set is present in ``other``."""
        return self.issubset(other)

    def matches(self, server_attrs: Iterable[Attribute]) -> bool:
        """True iff a server offering ``server_attrs`` satisfies this requirement."""
        return self.is_subset_of(server_attrs)

    def excess_over(self, required: Iterable[Attribute]) -> int:
        """Number of attributes in this set that ``required`` does not ask for."""
        return len(self.difference(required))

    def __repr__(self) -> str:
        return f"AttributeSet({{{', '.join(sorted(str(a) for a in self))}}})"

"""Two-field permission key and its translation to stored permission names.

Stored permission names come in two spellings: the canonical
``<module>_<action>`` and the legacy ``<module>.<action>`` used by rows
seeded before the underscore convention. Everything inside the core works
with :class:`PermissionKey`; the combined string only appears at the store
boundary, through the properties and :meth:`PermissionKey.parse` below.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Self

CANONICAL_SEPARATOR = "_"
LEGACY_SEPARATOR = "."


@dataclass(frozen=True, slots=True, order=True)
class PermissionKey:
    """A ``(module, action)`` pair, e.g. ``PermissionKey("reports", "export")``."""

    module: str
    action: str

    def __post_init__(self) -> None:
        for field_name in ("module", "action"):
            value = getattr(self, field_name)
            if not isinstance(value, str) or not value.strip():
                raise ValueError(f"Permission {field_name} must be a non-empty string, got {value!r}")
            if value != value.strip() or any(ch.isspace() for ch in value):
                raise ValueError(f"Permission {field_name} must not contain whitespace: {value!r}")
        if LEGACY_SEPARATOR in self.module or LEGACY_SEPARATOR in self.action:
            raise ValueError(f"Permission module/action must not contain '{LEGACY_SEPARATOR}'")

    @property
    def canonical_name(self) -> str:
        return f"{self.module}{CANONICAL_SEPARATOR}{self.action}"

    @property
    def legacy_name(self) -> str:
        return f"{self.module}{LEGACY_SEPARATOR}{self.action}"

    @property
    def spellings(self) -> tuple[str, str]:
        """Stored names that satisfy this key, canonical first."""
        return self.canonical_name, self.legacy_name

    def __str__(self) -> str:
        return self.canonical_name

    @classmethod
    def coerce(cls, value: "PermissionKey | tuple[str, str] | str") -> Self:
        """Accept a key, a ``(module, action)`` tuple, or a stored permission name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, tuple):
            module, action = value
            return cls(module, action)
        if isinstance(value, str):
            parsed = cls.parse(value)
            if parsed is None:
                raise ValueError(f"Cannot interpret {value!r} as a permission name")
            return parsed
        raise TypeError(f"Unsupported permission key type: {type(value).__name__}")

    @classmethod
    def coerce_all(cls, values: Iterable["PermissionKey | tuple[str, str] | str"]) -> list[Self]:
        return [cls.coerce(v) for v in values]

    @classmethod
    def parse(cls, name: str, module: str | None = None) -> Self | None:
        """Split a stored permission name into a key, or return ``None``.

        With *module* given, *name* must start with ``module_`` or
        ``module.`` and the remainder is the action. Without it, the legacy
        dot form splits at the first dot and the canonical form at the last
        underscore, so ``campaign_data_read`` parses as
        ``("campaign_data", "read")``.
        """
        if not name:
            return None
        try:
            if module is not None:
                for separator in (CANONICAL_SEPARATOR, LEGACY_SEPARATOR):
                    prefix = f"{module}{separator}"
                    if name.startswith(prefix) and len(name) > len(prefix):
                        return cls(module, name[len(prefix) :])
                return None
            if LEGACY_SEPARATOR in name:
                head, _, tail = name.partition(LEGACY_SEPARATOR)
                return cls(head, tail)
            head, sep, tail = name.rpartition(CANONICAL_SEPARATOR)
            if not sep:
                return None
            return cls(head, tail)
        except ValueError:
            return None

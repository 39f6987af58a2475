"""Pairable identity references.

An identity is either an internal staff ``User`` or an external ``Driver``.
Tables that point at an identity store the ``(identity_kind, identity_id)``
pair instead of one nullable foreign key per kind, so a row can never point
at both kinds at once.
"""

from dataclasses import dataclass
from enum import Enum

from sqlalchemy import CheckConstraint


class IdentityKind(str, Enum):
    """Which identity table a reference points into."""

    INTERNAL = "internal"
    EXTERNAL = "external"


@dataclass(frozen=True)
class IdentityRef:
    """Tagged reference to a pairable identity."""

    kind: IdentityKind
    id: str

    @classmethod
    def internal(cls, user_id: str) -> "IdentityRef":
        return cls(IdentityKind.INTERNAL, user_id)

    @classmethod
    def external(cls, driver_id: str) -> "IdentityRef":
        return cls(IdentityKind.EXTERNAL, driver_id)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


def identity_pair_constraint(table: str, *, nullable: bool) -> CheckConstraint:
    """Check constraint keeping identity_kind and identity_id in step."""
    if nullable:
        sql = "(identity_kind IS NULL) = (identity_id IS NULL)"
    else:
        sql = "identity_kind IS NOT NULL AND identity_id IS NOT NULL"
    return CheckConstraint(sql, name=f"ck_{table}_identity_pair")

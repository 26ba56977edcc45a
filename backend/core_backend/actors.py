"""
Actor identity passed into every mutating service call.

Authentication happens outside this backend, so callers hand us either a bare
id (``ActorRef``) or an id with the denormalized fields we store on records
(``Actor``). ``resolve_actor`` normalizes whatever the boundary has into one
of the two; services only ever read ``.id``, ``.display_name`` and ``.role``.
"""
import uuid
from dataclasses import dataclass, field
from typing import Optional, Tuple

from core_backend.exceptions import ValidationFailed


@dataclass(frozen=True)
class ActorRef:
    """An actor known only by id."""

    id: uuid.UUID

    kind = "ref"

    @property
    def display_name(self) -> str:
        return ""

    @property
    def role(self) -> Optional[str]:
        return None

    @property
    def assigned_category_ids(self) -> Tuple[uuid.UUID, ...]:
        return ()


@dataclass(frozen=True)
class Actor:
    """An actor with the denormalized fields recorded alongside its id."""

    id: uuid.UUID
    role: str
    display_name: str
    assigned_category_ids: Tuple[uuid.UUID, ...] = field(default_factory=tuple)

    kind = "full"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_cook(self) -> bool:
        return self.role == "cook"


def _as_uuid(value, field="actor"):
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ValidationFailed(f"'{value}' is not a valid id", field=field)


def resolve_actor(value):
    """
    Normalize a boundary value into ``Actor`` or ``ActorRef``.

    Accepts an existing actor, a StaffMember-like object (``as_actor()``),
    a dict with at least ``id``, or a bare id (UUID or string).
    Returns None for None.

    Raises:
        ValidationFailed: a dict without ``id`` or an id that is not a UUID
    """
    if value is None:
        return None
    if isinstance(value, (Actor, ActorRef)):
        return value
    if hasattr(value, "as_actor"):
        return value.as_actor()
    if isinstance(value, dict):
        if "id" not in value:
            raise ValidationFailed("Actor payload requires an 'id'", field="actor")
        if "role" not in value and "display_name" not in value:
            return ActorRef(id=_as_uuid(value["id"]))
        return Actor(
            id=_as_uuid(value["id"]),
            role=value.get("role", ""),
            display_name=value.get("display_name", ""),
            assigned_category_ids=tuple(
                _as_uuid(c, field="assigned_category_ids") for c in value.get("assigned_category_ids", ())
            ),
        )
    return ActorRef(id=_as_uuid(value))

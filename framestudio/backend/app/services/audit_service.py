from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy.orm import Session

from ..db import models


@dataclass(frozen=True, slots=True)
class Actor:
    type: models.ActorType
    id: int | None = None


SYSTEM = Actor(models.ActorType.system)

_ROLE_ACTOR_TYPES = {
    models.UserRole.admin: models.ActorType.admin,
    models.UserRole.instructor: models.ActorType.instructor,
    models.UserRole.student: models.ActorType.student,
}


def actor_for(user: models.User | None) -> Actor:
    if user is None:
        return SYSTEM
    return Actor(_ROLE_ACTOR_TYPES.get(user.role, models.ActorType.student), user.id)


def log_action(
    db: Session,
    *,
    action: str,
    actor: Actor = SYSTEM,
    table_name: str | None = None,
    record_id: int | None = None,
    old_values: dict[str, Any] | None = None,
    new_values: dict[str, Any] | None = None,
) -> models.AuditLog:
    entry = models.AuditLog(
        actor_type=actor.type,
        actor_id=actor.id,
        action=action,
        table_name=table_name,
        record_id=record_id,
        old_values=old_values,
        new_values=new_values,
    )
    db.add(entry)
    return entry


__all__ = ["Actor", "SYSTEM", "actor_for", "log_action"]

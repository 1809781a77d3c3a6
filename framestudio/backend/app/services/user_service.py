from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from ..core.constants import USER_ACTIVATED
from ..db import models
from ..db.session import atomic
from .audit_service import SYSTEM, Actor, log_action
from .errors import InvalidRequestError, NotFoundError

logger = logging.getLogger(__name__)


def activate_user(db: Session, user_id: int, *, actor: Actor = SYSTEM) -> models.User:
    """Activate an account that is still waiting for activation."""

    with atomic(db):
        user = db.get(models.User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        if user.status != models.UserStatus.pending_activation:
            raise InvalidRequestError("User is not pending activation")
        user.status = models.UserStatus.active
        user.activation_token = None
        user.activation_token_expires_at = None
        log_action(
            db,
            action=USER_ACTIVATED,
            actor=actor,
            table_name="users",
            record_id=user.id,
            old_values={"status": models.UserStatus.pending_activation.value},
            new_values={"status": user.status.value, "email": user.email},
        )
    logger.info("User activated", extra={"user_id": user_id, "actor_id": actor.id})
    return user


__all__ = ["activate_user"]

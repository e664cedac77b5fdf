"""Capability checks for roster actions.

`can()` answers whether an actor may perform an action on a resource.
`grab_condition()` is the SQL form of the grab state rule, used to re-check
eligibility inside the UPDATE that performs the grab.
"""

import enum

from sqlalchemy import ColumnElement, and_, or_

from dutyroster.models.duty import Duty
from dutyroster.models.user import User

ADMIN_ROLE = "admin"


class Action(str, enum.Enum):
    GENERATE = "generate"
    ASSIGN_TEMPLATES = "assign_templates"
    GRAB = "grab"
    DROP = "drop"


ADMIN_ACTIONS = {Action.GENERATE, Action.ASSIGN_TEMPLATES}


def is_grabable_state(duty: Duty, actor: User) -> bool:
    """Free, offered to the actor, ownerless, or the actor's own pending offer."""
    if duty.free or duty.request_user_id == actor.id:
        return True
    if duty.request_user_id is None:
        return duty.user_id is None
    return duty.user_id == actor.id


def grab_condition(actor: User) -> ColumnElement[bool]:
    return or_(
        Duty.free.is_(True),
        Duty.request_user_id == actor.id,
        and_(Duty.request_user_id.is_(None), Duty.user_id.is_(None)),
        and_(Duty.request_user_id.is_not(None), Duty.user_id == actor.id),
    )


def can(actor: User, action: Action, resource: Duty | None = None) -> bool:
    if actor.has_role(ADMIN_ROLE) and action in ADMIN_ACTIONS:
        return True
    if action in ADMIN_ACTIONS:
        return False

    if resource is None:
        return False

    if action is Action.GRAB:
        if resource.timeslot.mc_only and not actor.mc:
            return False
        return is_grabable_state(resource, actor)

    if action is Action.DROP:
        return resource.user_id is not None and resource.user_id == actor.id and not resource.free

    return False

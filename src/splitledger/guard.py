"""Group membership and role checks shared by every mutating operation."""

import logging
from collections.abc import Iterable

from .exceptions import ForbiddenError, NotFoundError
from .models import Group, Member, Role, normalize_key

logger = logging.getLogger(__name__)

__all__ = ["authorize", "ensure_members", "normalize_key"]


def authorize(
    group: Group | None, participant_key: str, require_admin: bool = False
) -> Group:
    """
    Check that a participant may act on a group.

    Args:
        group: Group as returned by the persistence layer (None if absent)
        participant_key: Acting participant's email
        require_admin: Whether the action is restricted to the creator/admins

    Returns:
        The same group, for chaining

    Raises:
        NotFoundError: If the group does not exist
        ForbiddenError: If the participant is not a member, or not an admin
                        when one is required
    """
    if group is None:
        raise NotFoundError("Group", "Group not found")

    key = normalize_key(participant_key)
    if not group.is_member(key):
        logger.debug(f"{key} rejected: not a member of group {group.id}")
        raise ForbiddenError("Not a member of this group")

    if require_admin:
        is_creator = group.created_by == key
        if not is_creator and not group.is_admin(key):
            logger.debug(f"{key} rejected: not an admin of group {group.id}")
            raise ForbiddenError("Only creator or admin can perform this action")

    return group


def ensure_members(group: Group, members: Iterable[Member | str]) -> Group:
    """
    Add any missing participants to a group as plain members.

    Idempotent: keys already present are left untouched (including their role
    and name) and blank keys are skipped.

    Args:
        group: The current group
        members: Member records or bare emails

    Returns:
        A new Group including every referenced participant
    """
    current = list(group.members)
    known = {m.email for m in current}
    added = []

    for entry in members:
        if isinstance(entry, Member):
            key, name = entry.email, entry.name
        else:
            key, name = normalize_key(entry), ""
        if not key or key in known:
            continue
        known.add(key)
        current.append(Member(email=key, name=name, role=Role.MEMBER))
        added.append(key)

    if not added:
        return group

    logger.info(f"Added {len(added)} member(s) to group {group.id}: {', '.join(added)}")
    return Group.model_validate({**group.model_dump(), "members": current})

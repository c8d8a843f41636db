"""Group lifecycle shared by split groups and meal groups."""

import logging
from collections.abc import Sequence

from .config import Settings
from .db import Database
from .exceptions import InvalidInputError
from .guard import authorize, ensure_members
from .models import Group, GroupKind, Member, Role, build, normalize_key

logger = logging.getLogger(__name__)


def parse_member(entry: Member | str) -> Member:
    """
    Accept a Member or a bare "email" / "email=Display Name" string.
    """
    if isinstance(entry, Member):
        return entry
    email, _, name = str(entry).partition("=")
    return build(Member, email=email, name=name)


class GroupService:
    """Create, list and grow groups of one kind.

    Subclasses set ``kind`` and add the operations on the group's events.
    """

    kind: GroupKind = GroupKind.SPLIT

    def __init__(self, settings: Settings, database: Database):
        """Initialize the group service."""
        self.settings = settings
        self.db = database

    def create_group(
        self,
        actor: str,
        name: str,
        members: Sequence[Member | str] = (),
        actor_name: str | None = None,
    ) -> Group:
        """
        Create a group with the actor as its admin.

        Args:
            actor: Creating participant's email
            name: Group name (required)
            members: Additional members (duplicates collapse)
            actor_name: Display name for the creator

        Returns:
            The saved group
        """
        creator = normalize_key(actor)
        if not creator:
            raise InvalidInputError("A creator email is required.")

        others = [parse_member(m) for m in members]
        member_list = [
            Member(
                email=creator,
                name=actor_name or self.settings.user_name,
                role=Role.ADMIN,
            )
        ]
        member_list.extend(
            m.model_copy(update={"role": Role.MEMBER})
            for m in others
            if m.email != creator
        )

        group = build(
            Group,
            kind=self.kind,
            name=name or "",
            created_by=creator,
            members=member_list,
        )
        saved = self.db.save_group(group)

        logger.info(
            f"Created {self.kind.value} group {saved.id} '{saved.name}' "
            f"with {len(saved.members)} member(s)"
        )
        return saved

    def list_groups(self, actor: str) -> list[Group]:
        """List the actor's groups, most recently updated first."""
        return self.db.list_groups(normalize_key(actor), self.kind)

    def get_group(self, actor: str, group_id: int, require_admin: bool = False) -> Group:
        """Load a group the actor may act on."""
        group = self.db.get_group(group_id)
        if group is not None and group.kind != self.kind:
            group = None
        return authorize(group, actor, require_admin)

    def add_members(
        self, actor: str, group_id: int, members: Sequence[Member | str]
    ) -> Group:
        """Add members to a group (creator/admin only)."""
        group = self.get_group(actor, group_id, require_admin=True)
        updated = ensure_members(group, [parse_member(m) for m in members])
        if updated is group:
            return group
        return self.db.save_group(updated)

    def _save_membership(self, group: Group, updated: Group) -> None:
        """Persist a membership change, if there was one."""
        if updated is not group:
            self.db.save_group(updated)

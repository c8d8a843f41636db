"""Tests for group membership and role checks."""

import pytest

from splitledger.exceptions import ForbiddenError, NotFoundError
from splitledger.guard import authorize, ensure_members
from splitledger.models import Group, Member, Role


@pytest.fixture
def group():
    """A group created by alice with bob as a plain member."""
    return Group(
        id=1,
        name="Flat",
        created_by="alice@x.com",
        members=[
            Member(email="alice@x.com", name="Alice", role=Role.ADMIN),
            Member(email="bob@x.com", name="Bob"),
        ],
    )


class TestAuthorize:
    def test_missing_group(self):
        with pytest.raises(NotFoundError, match="Group not found"):
            authorize(None, "alice@x.com")

    def test_member_allowed(self, group):
        assert authorize(group, "bob@x.com") is group

    def test_key_is_normalized(self, group):
        assert authorize(group, "  BOB@X.com ") is group

    def test_non_member_forbidden(self, group):
        with pytest.raises(ForbiddenError, match="Not a member"):
            authorize(group, "eve@x.com")

    def test_member_cannot_do_admin_action(self, group):
        with pytest.raises(ForbiddenError, match="Only creator or admin"):
            authorize(group, "bob@x.com", require_admin=True)

    def test_admin_allowed(self, group):
        assert authorize(group, "alice@x.com", require_admin=True) is group

    def test_promoted_admin_allowed(self, group):
        promoted = group.model_copy(
            update={
                "members": [
                    group.members[0],
                    group.members[1].model_copy(update={"role": Role.ADMIN}),
                ]
            }
        )

        assert authorize(promoted, "bob@x.com", require_admin=True) is promoted


class TestEnsureMembers:
    def test_adds_missing_members(self, group):
        updated = ensure_members(group, ["carol@x.com", "Dave@X.com"])

        assert updated.member_keys == [
            "alice@x.com",
            "bob@x.com",
            "carol@x.com",
            "dave@x.com",
        ]
        assert updated.get_member("carol@x.com").role == Role.MEMBER

    def test_idempotent(self, group):
        """Known keys, repeats and blanks leave the group untouched."""
        assert ensure_members(group, ["bob@x.com", "BOB@x.com", ""]) is group

        once = ensure_members(group, ["carol@x.com"])
        twice = ensure_members(once, ["carol@x.com"])
        assert twice is once

    def test_existing_roles_and_names_kept(self, group):
        updated = ensure_members(
            group, [Member(email="alice@x.com", name="Someone Else"), "carol@x.com"]
        )

        alice = updated.get_member("alice@x.com")
        assert alice.name == "Alice"
        assert alice.role == Role.ADMIN

    def test_accepts_member_records(self, group):
        updated = ensure_members(group, [Member(email="carol@x.com", name="Carol")])

        assert updated.get_member("carol@x.com").name == "Carol"

"""Unit tests for WorkspaceService.

Run with: pytest tests/unit/test_workspace_service.py -v
"""

from uuid import uuid4

import pytest
from sqlmodel import select

from teamspace.db.models import Role, WorkspaceMember
from teamspace_api.exceptions import (
    ConflictError,
    ForbiddenOperationError,
    NotFoundError,
    ValidationError,
)
from teamspace_api.services.slugs import generate_slug


class TestGenerateSlug:
    """Tests for slug generation."""

    def test_basic(self):
        assert generate_slug("My Team Space") == "my-team-space"

    def test_strips_special_characters(self):
        assert generate_slug("  Acme & Co.!  ") == "acme-co"

    def test_fallback_when_empty(self):
        assert generate_slug("!!!") == "workspace"
        assert generate_slug("!!!", fallback="project") == "project"


class TestCreateWorkspace:
    """Tests for create_workspace."""

    def test_creates_without_owner_row(self, session, workspace_service, owner):
        """The owner is implicit and never written to the roster."""
        workspace = workspace_service.create_workspace(session, "Acme", owner.id)

        assert workspace.slug == "acme"
        assert workspace.owner_id == owner.id
        assert workspace.members == []
        assert workspace_service.get_member_role(session, workspace.id, owner.id) == Role.owner

    def test_blank_name_rejected(self, session, workspace_service, owner):
        with pytest.raises(ValidationError):
            workspace_service.create_workspace(session, "   ", owner.id)

    def test_malformed_slug_rejected(self, session, workspace_service, owner):
        with pytest.raises(ValidationError):
            workspace_service.create_workspace(session, "Acme", owner.id, slug="Not A Slug")

    def test_slug_collision(self, session, workspace_service, owner):
        workspace_service.create_workspace(session, "Acme", owner.id)
        with pytest.raises(ConflictError):
            workspace_service.create_workspace(session, "ACME", owner.id)

    def test_is_slug_available(self, session, workspace_service, workspace):
        assert not workspace_service.is_slug_available(session, "acme")
        assert workspace_service.is_slug_available(session, "other")


class TestUpdateWorkspace:
    """Tests for update_workspace."""

    def test_updates_fields_and_version(self, session, workspace_service, workspace):
        version = workspace.version
        updated = workspace_service.update_workspace(
            session, workspace.id, name="Acme Inc", settings={"default_visibility": "private"}
        )
        assert updated.name == "Acme Inc"
        assert updated.settings == {"default_visibility": "private"}
        assert updated.slug == "acme"
        assert updated.version == version + 1

    def test_missing_workspace(self, session, workspace_service):
        with pytest.raises(NotFoundError):
            workspace_service.update_workspace(session, uuid4(), name="X")


class TestAddMember:
    """Tests for add_member."""

    def test_appends_member(self, session, workspace_service, workspace, make_user):
        alice = make_user("alice")
        workspace = workspace_service.add_member(session, workspace.id, alice.id, Role.editor)

        assert [(m.user_id, m.role) for m in workspace.members] == [(alice.id, Role.editor)]

    def test_owner_cannot_be_added(self, session, workspace_service, workspace, owner):
        with pytest.raises(ConflictError):
            workspace_service.add_member(session, workspace.id, owner.id, Role.admin)

    def test_duplicate_member(self, session, workspace_service, workspace, make_user):
        alice = make_user("alice")
        workspace_service.add_member(session, workspace.id, alice.id, Role.viewer)
        with pytest.raises(ConflictError):
            workspace_service.add_member(session, workspace.id, alice.id, Role.admin)

    def test_owner_role_cannot_be_granted(self, session, workspace_service, workspace, make_user):
        alice = make_user("alice")
        with pytest.raises(ValidationError):
            workspace_service.add_member(session, workspace.id, alice.id, Role.owner)

    def test_missing_workspace(self, session, workspace_service, make_user):
        alice = make_user("alice")
        with pytest.raises(NotFoundError):
            workspace_service.add_member(session, uuid4(), alice.id, Role.viewer)


class TestRemoveMember:
    """Tests for remove_member."""

    def test_owner_is_unremovable(self, session, workspace_service, workspace, owner):
        with pytest.raises(ForbiddenOperationError):
            workspace_service.remove_member(session, workspace.id, owner.id)

    def test_removes_member(self, session, workspace_service, workspace, make_user):
        alice = make_user("alice")
        workspace_service.add_member(session, workspace.id, alice.id, Role.viewer)

        workspace = workspace_service.remove_member(session, workspace.id, alice.id)

        assert workspace.members == []
        assert workspace_service.get_member_role(session, workspace.id, alice.id) is None

    def test_absent_user_is_noop_twice(self, session, workspace_service, workspace, make_user):
        """Removing a non-member succeeds without side effects, repeatedly."""
        alice = make_user("alice")
        version = workspace.version

        workspace_service.remove_member(session, workspace.id, alice.id)
        workspace = workspace_service.remove_member(session, workspace.id, alice.id)

        assert workspace.version == version
        assert workspace.members == []


class TestChangeMemberRole:
    """Tests for change_member_role."""

    def test_changes_role(self, session, workspace_service, workspace, make_user):
        alice = make_user("alice")
        workspace_service.add_member(session, workspace.id, alice.id, Role.viewer)

        workspace_service.change_member_role(session, workspace.id, alice.id, Role.admin)

        assert workspace_service.get_member_role(session, workspace.id, alice.id) == Role.admin

    def test_owner_forbidden(self, session, workspace_service, workspace, owner):
        with pytest.raises(ForbiddenOperationError):
            workspace_service.change_member_role(session, workspace.id, owner.id, Role.viewer)

    def test_non_member(self, session, workspace_service, workspace, make_user):
        alice = make_user("alice")
        with pytest.raises(NotFoundError):
            workspace_service.change_member_role(session, workspace.id, alice.id, Role.admin)

    def test_cannot_promote_to_owner(self, session, workspace_service, workspace, make_user):
        alice = make_user("alice")
        workspace_service.add_member(session, workspace.id, alice.id, Role.admin)
        with pytest.raises(ValidationError):
            workspace_service.change_member_role(session, workspace.id, alice.id, Role.owner)


class TestOwnerInvariant:
    """The owner never appears in the roster."""

    def test_no_owner_rows_after_operations(self, session, workspace_service, workspace, owner, make_user):
        alice, bob = make_user("alice"), make_user("bob")
        workspace_service.add_member(session, workspace.id, alice.id, Role.admin)
        workspace_service.add_member(session, workspace.id, bob.id, Role.viewer)
        workspace_service.change_member_role(session, workspace.id, bob.id, Role.editor)
        workspace_service.remove_member(session, workspace.id, alice.id)

        rows = session.exec(
            select(WorkspaceMember).where(WorkspaceMember.workspace_id == workspace.id)
        ).all()
        assert owner.id not in {row.user_id for row in rows}
        assert Role.owner not in {row.role for row in rows}


class TestRoleChecks:
    """Tests for require_role and get_member_stats."""

    def test_require_role(self, session, workspace_service, workspace, owner, make_user):
        alice = make_user("alice")
        workspace_service.add_member(session, workspace.id, alice.id, Role.editor)

        assert workspace_service.require_role(session, workspace.id, owner.id, Role.admin) == Role.owner
        with pytest.raises(ForbiddenOperationError):
            workspace_service.require_role(session, workspace.id, alice.id, Role.admin)
        with pytest.raises(ForbiddenOperationError):
            workspace_service.require_role(session, workspace.id, uuid4(), Role.viewer)

    def test_member_stats(self, session, workspace_service, invite_service, workspace, owner, make_user):
        alice, bob = make_user("alice"), make_user("bob")
        workspace_service.add_member(session, workspace.id, alice.id, Role.editor)
        workspace_service.add_member(session, workspace.id, bob.id, Role.editor)
        invite_service.create_invite(
            session, workspace.id, "carol@example.com", Role.viewer, owner.id, send_email=False
        )

        stats = workspace_service.get_member_stats(session, workspace.id)

        assert stats.total == 3
        assert stats.by_role[Role.owner] == 1
        assert stats.by_role[Role.editor] == 2
        assert stats.by_role[Role.admin] == 0
        assert stats.pending_invites == 1

    def test_list_user_workspaces(self, session, workspace_service, workspace, owner, make_user):
        alice = make_user("alice")
        other = workspace_service.create_workspace(session, "Other", alice.id)
        workspace_service.add_member(session, workspace.id, alice.id, Role.viewer)

        assert {w.id for w in workspace_service.list_user_workspaces(session, alice.id)} == {
            workspace.id,
            other.id,
        }
        assert [w.id for w in workspace_service.list_user_workspaces(session, owner.id)] == [
            workspace.id
        ]

"""Unit tests for ProjectService.

PUBLIC projects track their workspace; PRIVATE projects keep their own
roster and ignore workspace changes.

Run with: pytest tests/unit/test_project_service.py -v
"""

from unittest.mock import patch
from uuid import uuid4

import pytest
from sqlmodel import select

from teamspace.db.models import (
    PrivateAccess,
    ProjectMember,
    ProjectVisibility,
    PublicAccess,
    Role,
)
from teamspace.repositories import ProjectRepository
from teamspace_api.exceptions import (
    ConflictError,
    ForbiddenOperationError,
    NotFoundError,
    ValidationError,
)


@pytest.fixture
def members(session, workspace_service, workspace, make_user):
    """Two workspace members: alice (editor) and bob (viewer)."""
    alice, bob = make_user("alice"), make_user("bob")
    workspace_service.add_member(session, workspace.id, alice.id, Role.editor)
    workspace_service.add_member(session, workspace.id, bob.id, Role.viewer)
    return alice, bob


@pytest.fixture
def public_project(session, project_service, workspace, owner):
    return project_service.create_project(session, workspace.id, "Website", owner.id)


@pytest.fixture
def private_project(session, project_service, workspace, owner):
    return project_service.create_project(
        session, workspace.id, "Secret", owner.id, visibility=ProjectVisibility.PRIVATE
    )


class TestCreateProject:
    """Tests for create_project."""

    def test_slug_suffixes(self, session, project_service, workspace, owner):
        first = project_service.create_project(session, workspace.id, "Website", owner.id)
        second = project_service.create_project(session, workspace.id, "Website", owner.id)
        third = project_service.create_project(session, workspace.id, "Website", owner.id)

        assert [first.slug, second.slug, third.slug] == ["website", "website-2", "website-3"]

    def test_slug_unique_per_workspace_only(self, session, project_service, workspace_service, workspace, owner):
        other = workspace_service.create_workspace(session, "Other", owner.id)
        project_service.create_project(session, workspace.id, "Website", owner.id)
        project = project_service.create_project(session, other.id, "Website", owner.id)
        assert project.slug == "website"

    def test_explicit_slug_conflict(self, session, project_service, workspace, owner):
        project_service.create_project(session, workspace.id, "Website", owner.id, slug="site")
        with pytest.raises(ConflictError):
            project_service.create_project(session, workspace.id, "Other", owner.id, slug="site")

    def test_viewer_cannot_create(self, session, project_service, workspace, members):
        _, bob = members
        with pytest.raises(ForbiddenOperationError):
            project_service.create_project(session, workspace.id, "Nope", bob.id)

    def test_editor_can_create(self, session, project_service, workspace, members):
        alice, _ = members
        project = project_service.create_project(session, workspace.id, "Mine", alice.id)
        assert project.created_by == alice.id

    def test_private_seeds_creator(self, session, project_service, workspace, owner, members):
        alice, _ = members
        by_owner = project_service.create_project(
            session, workspace.id, "A", owner.id, visibility=ProjectVisibility.PRIVATE
        )
        by_editor = project_service.create_project(
            session, workspace.id, "B", alice.id, visibility=ProjectVisibility.PRIVATE
        )

        assert [(m.user_id, m.role) for m in project_service.get_effective_members(session, by_owner.id)] == [
            (owner.id, Role.owner)
        ]
        assert [(m.user_id, m.role) for m in project_service.get_effective_members(session, by_editor.id)] == [
            (alice.id, Role.admin)
        ]

    def test_missing_workspace(self, session, project_service, owner):
        with pytest.raises(NotFoundError):
            project_service.create_project(session, uuid4(), "X", owner.id)


class TestAccessVariant:
    """get_access returns the variant matching visibility."""

    def test_public(self, session, project_service, public_project, workspace):
        access = project_service.get_access(session, public_project.id)
        assert access == PublicAccess(workspace_id=workspace.id)

    def test_private(self, session, project_service, private_project, owner):
        access = project_service.get_access(session, private_project.id)
        assert isinstance(access, PrivateAccess)
        assert [m.user_id for m in access.roster] == [owner.id]


class TestPublicEffectiveMembers:
    """PUBLIC projects inherit the workspace roster."""

    def test_owner_plus_members(self, session, project_service, workspace_service, public_project, workspace, owner, members, make_user):
        """Owner + 2 members, growing with the workspace."""
        alice, bob = members
        effective = project_service.get_effective_members(session, public_project.id)

        assert len(effective) == 3
        assert effective[0].user_id == owner.id
        assert effective[0].role == Role.owner
        assert {(m.user_id, m.role) for m in effective[1:]} == {
            (alice.id, Role.editor),
            (bob.id, Role.viewer),
        }
        assert all(m.inherited for m in effective)

        carol = make_user("carol")
        workspace_service.add_member(session, workspace.id, carol.id, Role.viewer)

        effective = project_service.get_effective_members(session, public_project.id)
        assert len(effective) == 4
        assert carol.id in {m.user_id for m in effective}

    def test_shrinks_with_workspace(self, session, project_service, workspace_service, public_project, workspace, members):
        alice, _ = members
        workspace_service.remove_member(session, workspace.id, alice.id)

        effective = project_service.get_effective_members(session, public_project.id)
        assert alice.id not in {m.user_id for m in effective}

    def test_stale_roster_rows_ignored(self, session, project_service, public_project, owner, make_user):
        """Leftover roster rows under a PUBLIC project are never read."""
        stranger = make_user("stranger")
        session.add(
            ProjectMember(
                project_id=public_project.id,
                user_id=stranger.id,
                role=Role.admin,
                added_by=owner.id,
            )
        )
        session.commit()

        effective = project_service.get_effective_members(session, public_project.id)
        assert stranger.id not in {m.user_id for m in effective}
        assert project_service.get_effective_role(session, public_project.id, stranger.id) is None

    def test_synthesized_metadata(self, session, project_service, public_project, workspace, owner, members):
        alice, _ = members
        effective = {m.user_id: m for m in project_service.get_effective_members(session, public_project.id)}

        assert effective[owner.id].added_at == workspace.created_at
        assert effective[owner.id].added_by == owner.id
        assert effective[alice.id].added_at == workspace.get_member(alice.id).joined_at

    def test_roster_operations_rejected(self, session, project_service, public_project, owner, members):
        alice, _ = members
        with pytest.raises(ValidationError, match="inherit membership"):
            project_service.add_member_to_project(session, public_project.id, alice.id, Role.viewer, owner.id)
        with pytest.raises(ValidationError):
            project_service.remove_member_from_project(session, public_project.id, alice.id)
        with pytest.raises(ValidationError):
            project_service.update_project_member_role(session, public_project.id, alice.id, Role.admin)

    def test_public_access_never_reads_roster(self, session, public_project):
        repo = ProjectRepository(session)
        with patch.object(session, "exec", wraps=session.exec) as spy:
            repo.get_access(public_project)
        spy.assert_not_called()


class TestPrivateEffectiveMembers:
    """PRIVATE projects are isolated from workspace changes."""

    def test_isolated_from_workspace(self, session, project_service, workspace_service, private_project, workspace, owner, members, make_user):
        before = project_service.get_effective_members(session, private_project.id)

        carol = make_user("carol")
        workspace_service.add_member(session, workspace.id, carol.id, Role.admin)
        alice, _ = members
        workspace_service.change_member_role(session, workspace.id, alice.id, Role.admin)

        after = project_service.get_effective_members(session, private_project.id)
        assert after == before

    def test_add_update_remove(self, session, project_service, private_project, owner, members):
        alice, _ = members
        project_service.add_member_to_project(session, private_project.id, alice.id, Role.viewer, owner.id)
        assert project_service.get_effective_role(session, private_project.id, alice.id) == Role.viewer

        project_service.update_project_member_role(session, private_project.id, alice.id, Role.editor)
        assert project_service.get_effective_role(session, private_project.id, alice.id) == Role.editor

        project_service.remove_member_from_project(session, private_project.id, alice.id)
        assert not project_service.can_access(session, private_project.id, alice.id)

    def test_duplicate_add(self, session, project_service, private_project, owner, members):
        alice, _ = members
        project_service.add_member_to_project(session, private_project.id, alice.id, Role.viewer, owner.id)
        with pytest.raises(ConflictError):
            project_service.add_member_to_project(session, private_project.id, alice.id, Role.admin, owner.id)

    def test_non_workspace_user(self, session, project_service, private_project, owner, make_user):
        stranger = make_user("stranger")
        with pytest.raises(ValidationError):
            project_service.add_member_to_project(session, private_project.id, stranger.id, Role.viewer, owner.id)

    def test_missing_target(self, session, project_service, private_project, members):
        alice, _ = members
        with pytest.raises(NotFoundError):
            project_service.remove_member_from_project(session, private_project.id, alice.id)
        with pytest.raises(NotFoundError):
            project_service.update_project_member_role(session, private_project.id, alice.id, Role.admin)

    def test_workspace_owner_not_implicit(self, session, project_service, workspace, members):
        """Only the roster counts, even for the workspace owner."""
        alice, _ = members
        project = project_service.create_project(
            session, workspace.id, "Alice Only", alice.id, visibility=ProjectVisibility.PRIVATE
        )
        assert not project_service.can_access(session, project.id, workspace.owner_id)


class TestSetVisibility:
    """Visibility transitions never carry a roster across."""

    def test_public_to_private_starts_empty(self, session, project_service, public_project, members):
        project_service.set_visibility(session, public_project.id, ProjectVisibility.PRIVATE)

        assert project_service.get_effective_members(session, public_project.id) == []

    def test_private_to_public_discards_roster(self, session, project_service, private_project, owner, members):
        alice, _ = members
        project_service.add_member_to_project(session, private_project.id, alice.id, Role.admin, owner.id)

        project_service.set_visibility(session, private_project.id, ProjectVisibility.PUBLIC)

        rows = session.exec(
            select(ProjectMember).where(ProjectMember.project_id == private_project.id)
        ).all()
        assert rows == []
        # alice now inherits her workspace role, not the old project role
        assert project_service.get_effective_role(session, private_project.id, alice.id) == Role.editor

    def test_round_trip_does_not_restore(self, session, project_service, private_project, owner, members):
        alice, _ = members
        project_service.add_member_to_project(session, private_project.id, alice.id, Role.admin, owner.id)

        project_service.set_visibility(session, private_project.id, ProjectVisibility.PUBLIC)
        project_service.set_visibility(session, private_project.id, ProjectVisibility.PRIVATE)

        assert project_service.get_effective_members(session, private_project.id) == []

    def test_same_visibility_is_noop(self, session, project_service, private_project):
        version = private_project.version
        project_service.set_visibility(session, private_project.id, ProjectVisibility.PRIVATE)
        session.refresh(private_project)
        assert private_project.version == version
        assert len(project_service.get_effective_members(session, private_project.id)) == 1

    def test_concurrent_change_conflicts(self, session, project_service, public_project):
        with patch.object(ProjectRepository, "set_visibility", return_value=False):
            with pytest.raises(ConflictError):
                project_service.set_visibility(session, public_project.id, ProjectVisibility.PRIVATE)

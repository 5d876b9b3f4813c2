"""Tests for table models and column types."""

from datetime import datetime, timedelta, timezone

from sqlalchemy.dialects import postgresql, sqlite

import teamspace.db.models as models
from teamspace.db.custom_types import UTCDateTime
from teamspace.db.models import User, UserCreate, Workspace, WorkspaceInvite, utcnow


class TestExports:
    def test_every_exported_name_resolves(self):
        for name in models.__all__:
            assert getattr(models, name) is not None, name

    def test_workspace_relationships_resolve(self, session, workspace_service, owner, make_user):
        workspace = workspace_service.create_workspace(session, "Acme", owner.id)
        member = make_user("alice")
        workspace_service.add_member(session, workspace.id, member.id, models.Role.editor)

        session.refresh(workspace)
        assert [m.user_id for m in workspace.members] == [member.id]
        assert workspace.members[0].workspace.id == workspace.id

    def test_user_create(self, session):
        user = User.model_validate(UserCreate(email="u@example.com", full_name="U"))
        session.add(user)
        session.commit()
        assert user.name == "U"


class TestUTCDateTime:
    """Timestamps are timezone-aware UTC on every backend."""

    def test_utcnow_is_aware(self):
        assert utcnow().tzinfo is timezone.utc

    def test_round_trip_is_aware(self, session, owner):
        session.refresh(owner)
        assert owner.created_at.tzinfo is not None
        assert owner.created_at.utcoffset() == timedelta(0)

    def test_invite_expiry_compares_with_utcnow(self, session, workspace, owner):
        invite = WorkspaceInvite(
            workspace_id=workspace.id,
            email="a@example.com",
            invited_by=owner.id,
            token="tok",
            expires_at=utcnow() - timedelta(seconds=1),
        )
        session.add(invite)
        session.commit()
        session.refresh(invite)

        assert invite.is_expired()

    def test_sqlite_stores_naive_utc(self):
        column_type = UTCDateTime()
        plus_two = timezone(timedelta(hours=2))
        value = datetime(2024, 1, 1, 12, 0, tzinfo=plus_two)

        stored = column_type.process_bind_param(value, sqlite.dialect())

        assert stored == datetime(2024, 1, 1, 10, 0)

    def test_postgres_keeps_timezone(self):
        stored = UTCDateTime().process_bind_param(
            datetime(2024, 1, 1, 10, 0), postgresql.dialect()
        )
        assert stored == datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)

    def test_loaded_naive_values_become_utc(self):
        loaded = UTCDateTime().process_result_value(datetime(2024, 1, 1), sqlite.dialect())
        assert loaded.tzinfo is timezone.utc

    def test_workspace_timestamps(self, session, workspace):
        session.refresh(workspace)
        assert isinstance(workspace, Workspace)
        assert workspace.created_at <= utcnow()

"""Role model and permission helpers.

Roles are totally ordered: owner > admin > editor > viewer. These helpers
are shared by workspace and project membership so privilege logic lives
in one place.

The workspace owner has no roster row. ``effective_role`` is the only
function that knows this; everything else asks it.
"""

from typing import Optional
from uuid import UUID

from teamspace.db.models import Role, Workspace

_RANKS: dict[Role, int] = {
    Role.owner: 4,
    Role.admin: 3,
    Role.editor: 2,
    Role.viewer: 1,
}


def rank(role: Role) -> int:
    """Integer privilege level; higher is more privileged."""
    return _RANKS[Role(role)]


def at_least(role: Optional[Role], threshold: Role) -> bool:
    """True if ``role`` is at or above ``threshold``. None is never enough."""
    if role is None:
        return False
    return rank(role) >= rank(threshold)


def can_invite_members(actor_role: Optional[Role]) -> bool:
    return at_least(actor_role, Role.admin)


def can_manage_members(actor_role: Optional[Role]) -> bool:
    return at_least(actor_role, Role.admin)


def effective_role(workspace: Workspace, user_id: UUID) -> Optional[Role]:
    """Role a user actually holds in a workspace.

    Returns Role.owner for the owner (even though it has no roster row),
    the roster role for members, and None for everyone else.
    """
    if workspace.owner_id == user_id:
        return Role.owner
    member = workspace.get_member(user_id)
    return member.role if member else None

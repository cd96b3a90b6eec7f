"""Role rules for user administration.

Plain validation functions for role assignments and account status
changes. No user administration routes are mounted; scripts/create_user.py
validates roles with validate_roles.
"""

from dataclasses import dataclass

VALID_ROLES = ("user", "admin")


class RoleValidationError(ValueError):
    """A role assignment or account change is not allowed."""

    pass


@dataclass(frozen=True)
class RoleInfo:
    value: str
    label: str
    description: str


def available_roles() -> list[RoleInfo]:
    return [
        RoleInfo("user", "User", "Default role with read-only access"),
        RoleInfo("admin", "Admin", "Full system administration access"),
    ]


def validate_roles(roles: list[str]) -> bool:
    """Roles must all be known and must include "user"."""
    return all(role in VALID_ROLES for role in roles) and "user" in roles


def prevent_self_demotion(actor_id: int, actor_roles: list[str], target_id: int, new_roles: list[str]) -> None:
    """Raise if an admin is removing their own admin role."""
    if actor_id == target_id and "admin" in actor_roles and "admin" not in new_roles:
        raise RoleValidationError("Cannot remove your own admin role")


def prevent_self_deactivation(actor_id: int, target_id: int, is_active: bool) -> None:
    """Raise if a user is deactivating their own account."""
    if actor_id == target_id and not is_active:
        raise RoleValidationError("Cannot deactivate yourself")


def requires_confirmation(current_roles: list[str], new_roles: list[str]) -> bool:
    """Granting or revoking admin needs explicit confirmation."""
    return ("admin" in current_roles) != ("admin" in new_roles)


def describe_role_change(old_roles: list[str], new_roles: list[str]) -> str:
    added = [role for role in new_roles if role not in old_roles]
    removed = [role for role in old_roles if role not in new_roles]
    changes = []
    if added:
        changes.append(f"Added: {', '.join(added)}")
    if removed:
        changes.append(f"Removed: {', '.join(removed)}")
    return "; ".join(changes) or "No changes"

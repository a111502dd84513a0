"""
Permission model: turn a user's roles into one effective capability map.

A role stores, per module slug, either ``true`` (full access) or an object of
boolean action flags. Aggregation over several roles is a pure union: once any
role grants a flag it stays granted, no role can revoke another role's grant.
The result is recomputed on demand and never cached.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from fieldservice.core.errors import ValidationError

PERMISSION_ACTIONS: List[str] = [
    "can_access",
    "view",
    "create",
    "edit",
    "delete",
    "assign",
    "approve",
    "send",
    "manage_status",
    "process_payment",
    "link_qr",
    "transfer",
    "ocr",
    "recurring",
    "convert",
    "fill",
    "live",
    "upload",
    "manage",
    "generate",
    "resolve",
    "impersonate",
    "export",
]

EffectivePermissions = Dict[str, Dict[str, bool]]


@dataclass(frozen=True)
class FullAccess:
    """Stored as a bare ``true``: every flag on the module."""


@dataclass(frozen=True)
class ModulePermissions:
    """Stored as an object of flags; only the flags set to true are kept."""

    granted: frozenset

    @property
    def manage(self) -> bool:
        return "manage" in self.granted


ModulePermissionValue = Union[FullAccess, ModulePermissions]


def full_access() -> Dict[str, bool]:
    return {action: True for action in PERMISSION_ACTIONS}


def no_access() -> Dict[str, bool]:
    return {action: False for action in PERMISSION_ACTIONS}


def parse_module_permission(value: Any) -> Optional[ModulePermissionValue]:
    """
    Read one stored module permission value.

    Returns None when the value contributes nothing: ``false``/null, anything
    that is neither a bool nor a mapping, or an object whose ``can_access`` is
    explicitly false. Unknown flags and non-true values are ignored.
    """
    if value is True:
        return FullAccess()
    if not isinstance(value, Mapping):
        return None
    if value.get("can_access") is False:
        return None
    granted = frozenset(
        action for action in PERMISSION_ACTIONS if value.get(action) is True
    )
    if "manage" in granted:
        return FullAccess()
    return ModulePermissions(granted=granted)


def aggregate_permissions(roles: Iterable[Any]) -> EffectivePermissions:
    """
    Combine the permission maps of several roles.

    ``roles`` may be Role rows or anything with a ``permissions`` attribute,
    or plain permission mappings. Order does not matter. Modules that end up
    with a granted flag always have ``can_access`` true; modules no role
    mentions are absent and therefore fully inaccessible.
    """
    effective: EffectivePermissions = {}
    for role in roles:
        permissions = role if isinstance(role, Mapping) else getattr(role, "permissions", None)
        if not isinstance(permissions, Mapping):
            continue
        for module_slug, raw in permissions.items():
            parsed = parse_module_permission(raw)
            if parsed is None:
                continue
            entry = effective.setdefault(module_slug, no_access())
            if isinstance(parsed, FullAccess):
                entry.update(full_access())
                continue
            for action in parsed.granted:
                entry[action] = True
            if any(entry.values()):
                entry["can_access"] = True
    return effective


def has_permission(effective: Mapping[str, Any], module_slug: str, action: str) -> bool:
    """Check one module action; ``manage`` grants everything, missing ``can_access`` denies everything."""
    module_perms = effective.get(module_slug)
    if module_perms is True:
        return True
    if not isinstance(module_perms, Mapping):
        return False
    if module_perms.get("manage") is True:
        return True
    if module_perms.get("can_access") is not True:
        return False
    return module_perms.get(action) is True


def can_access_module(effective: Mapping[str, Any], module_slug: str) -> bool:
    return has_permission(effective, module_slug, "can_access")


def validate_permission_map(raw: Any) -> Dict[str, Union[bool, Dict[str, bool]]]:
    """
    Validate a permission map submitted for a role before it is stored.

    Raises:
        ValidationError: unknown action flag, non-boolean flag, or wrong shape
    """
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ValidationError("permissions must be an object keyed by module slug")

    cleaned: Dict[str, Union[bool, Dict[str, bool]]] = {}
    for module_slug, value in raw.items():
        if not isinstance(module_slug, str) or not module_slug:
            raise ValidationError("Module slugs must be non-empty strings")
        if isinstance(value, bool):
            cleaned[module_slug] = value
            continue
        if not isinstance(value, Mapping):
            raise ValidationError(f"Permissions for '{module_slug}' must be a boolean or an object")
        flags: Dict[str, bool] = {}
        for action, flag in value.items():
            if action not in PERMISSION_ACTIONS:
                raise ValidationError(f"Unknown permission '{action}' for module '{module_slug}'")
            if not isinstance(flag, bool):
                raise ValidationError(f"Permission '{module_slug}:{action}' must be true or false")
            flags[action] = flag
        cleaned[module_slug] = flags
    return cleaned

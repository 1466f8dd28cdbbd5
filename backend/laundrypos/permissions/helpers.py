# Overview: Capability lookups and the precondition check used by services.

from __future__ import annotations

from dataclasses import dataclass

from .definitions import CAPABILITY_DEFINITIONS
from .roles import DEFAULT_ROLE_CAPABILITIES


class PermissionDeniedError(Exception):
    """Raised when a staff role lacks a required capability."""

    def __init__(self, role, capability: str):
        self.role = role
        self.capability = capability
        super().__init__(f"Role {role!r} is not allowed to {capability}")


@dataclass(frozen=True)
class StaffContext:
    """Who is performing an operation (recorded on invoices and ledger entries)."""
    name: str
    role: str
    user_id: str | None = None


def get_all_capability_codes():
    """Get list of all capability codes."""
    return [cap[0] for cap in CAPABILITY_DEFINITIONS]


def get_capability_definition(code):
    """Get full definition for a capability code."""
    for cap in CAPABILITY_DEFINITIONS:
        if cap[0] == code:
            return {
                "code": cap[0],
                "name": cap[1],
                "description": cap[2],
                "category": cap[3],
            }
    return None


def allowed_operations(role) -> frozenset:
    """Capability tags granted to a role. Unknown roles get nothing."""
    if role is None:
        return frozenset()
    key = getattr(role, "value", role)
    return frozenset(DEFAULT_ROLE_CAPABILITIES.get(str(key).lower(), ()))


def require_capability(role, capability: str) -> None:
    if capability not in allowed_operations(role):
        raise PermissionDeniedError(role, capability)


def check_actor(actor, capability: str) -> None:
    """Precondition for service operations; no actor means a trusted internal caller."""
    if actor is not None:
        require_capability(actor.role, capability)

# Overview: Role-based capability package.
# Re-exports the public API.

from .categories import CapabilityCategory
from .definitions import (
    CAPABILITY_DEFINITIONS,
    INVENTORY_CAPABILITIES,
    SALES_CAPABILITIES,
    PEOPLE_CAPABILITIES,
    SYSTEM_CAPABILITIES,
)
from .roles import DEFAULT_ROLE_CAPABILITIES
from .helpers import (
    PermissionDeniedError,
    StaffContext,
    allowed_operations,
    check_actor,
    get_all_capability_codes,
    get_capability_definition,
    require_capability,
)

__all__ = [
    "CapabilityCategory",
    "CAPABILITY_DEFINITIONS",
    "INVENTORY_CAPABILITIES",
    "SALES_CAPABILITIES",
    "PEOPLE_CAPABILITIES",
    "SYSTEM_CAPABILITIES",
    "DEFAULT_ROLE_CAPABILITIES",
    "PermissionDeniedError",
    "StaffContext",
    "allowed_operations",
    "check_actor",
    "get_all_capability_codes",
    "get_capability_definition",
    "require_capability",
]

from salescrm.errors import AuthorizationError
from salescrm.identity.roles import Role
from salescrm.platform.security.context import AuthContext
from salescrm.platform.security.fls import filter_write_payload, writable_user_fields
from salescrm.platform.security.policies import (
    Relationship,
    Resource,
    ResourceAction,
    authorize_assignment,
    authorize_internal_transfer,
    authorize_record,
    authorize_user_access,
    authorize_user_creation,
    require,
)
from salescrm.platform.security.repository import BaseRepository
from salescrm.platform.security.rls import OwnerScope, resolve_owner_scope

__all__ = [
    "AuthContext",
    "AuthorizationError",
    "BaseRepository",
    "OwnerScope",
    "Relationship",
    "Resource",
    "ResourceAction",
    "Role",
    "authorize_assignment",
    "authorize_internal_transfer",
    "authorize_record",
    "authorize_user_access",
    "authorize_user_creation",
    "filter_write_payload",
    "require",
    "resolve_owner_scope",
    "writable_user_fields",
]

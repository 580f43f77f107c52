"""Role-based access control: decisions, combinators, and role lifecycle."""

from adsdesk.rbac.actors import ActorContext, ActorResolver
from adsdesk.rbac.decisions import Authorizer
from adsdesk.rbac.keys import PermissionKey
from adsdesk.rbac.lifecycle import RoleAssignmentManager
from adsdesk.rbac.outcomes import Allow, Decision, Deny, Failure

__all__ = [
    "ActorContext",
    "ActorResolver",
    "Allow",
    "Authorizer",
    "Decision",
    "Deny",
    "Failure",
    "PermissionKey",
    "RoleAssignmentManager",
]

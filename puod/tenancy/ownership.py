"""Decides whether a principal may use an integration.

Rules are evaluated in order:

1. A platform admin without a client scope is always allowed.
2. A client-scoped caller may use only integrations owned by that client.
3. Group-owned integrations are delegated to a membership checker.
4. A company-scoped caller may use integrations its company owns, and
   client-owned integrations whose allowlist contains the company.
5. Everything else is denied.
"""

from typing import Callable, Iterable, List, Optional

from puod.logging import get_logger
from puod.tenancy.models import (
    ClientOwned,
    CompanyOwned,
    GroupOwned,
    Integration,
    Ownership,
    Principal,
)

logger = get_logger(__name__)

GroupMembershipChecker = Callable[[Principal, int], bool]


def deny_group_membership(principal: Principal, group_id: int) -> bool:
    return False


class OwnershipResolver:
    """Evaluates the ownership rules for one principal/integration pair."""

    def __init__(self, group_membership: Optional[GroupMembershipChecker] = None):
        self.group_membership = group_membership or deny_group_membership

    def is_allowed(self, principal: Principal, ownership: Ownership) -> bool:
        if principal.is_platform_admin and principal.client_id is None:
            return True

        if principal.client_id is not None:
            return (
                isinstance(ownership, ClientOwned)
                and ownership.client_id == principal.client_id
            )

        if isinstance(ownership, GroupOwned):
            return bool(self.group_membership(principal, ownership.group_id))

        if principal.company_id is not None:
            if isinstance(ownership, CompanyOwned):
                return ownership.company_id == principal.company_id
            if isinstance(ownership, ClientOwned):
                return principal.company_id in ownership.allowlisted_company_ids

        return False

    def can_access(self, principal: Principal, integration: Integration) -> bool:
        allowed = self.is_allowed(principal, integration.ownership)
        if not allowed:
            logger.debug(
                f"Denied integration {integration.id} to principal "
                f"(company={principal.company_id}, client={principal.client_id})"
            )
        return allowed


def available_integrations(
    integrations: Iterable[Integration], company_id: int
) -> List[Integration]:
    """Integrations a company owns plus client-owned ones shared with it.

    Soft-deleted integrations are excluded, duplicates (by id) collapse to the
    first occurrence, and the result is sorted by name then id.
    """
    seen = {}
    for integration in integrations:
        if integration.is_deleted or integration.id in seen:
            continue
        ownership = integration.ownership
        owned = isinstance(ownership, CompanyOwned) and ownership.company_id == company_id
        inherited = (
            isinstance(ownership, ClientOwned)
            and company_id in ownership.allowlisted_company_ids
        )
        if owned or inherited:
            seen[integration.id] = integration

    return sorted(seen.values(), key=lambda i: (i.name, i.id))

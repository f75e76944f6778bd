from .models import (
    ClientOwned,
    CompanyOwned,
    GroupOwned,
    Integration,
    Ownership,
    Principal,
    ownership_from_dict,
)
from .ownership import GroupMembershipChecker, OwnershipResolver, available_integrations
from .repository import (
    InMemoryIntegrationRepository,
    IntegrationRepository,
    load_integrations,
)

__all__ = [
    "ClientOwned",
    "CompanyOwned",
    "GroupOwned",
    "Integration",
    "Ownership",
    "Principal",
    "ownership_from_dict",
    "GroupMembershipChecker",
    "OwnershipResolver",
    "available_integrations",
    "InMemoryIntegrationRepository",
    "IntegrationRepository",
    "load_integrations",
]

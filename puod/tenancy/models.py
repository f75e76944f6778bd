"""Tenancy data model: who owns an integration and who is asking."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable, Mapping, Optional, Union

from puod.connectors.base.connector import PlatformKind


@dataclass(frozen=True)
class CompanyOwned:
    """Integration belongs to one company."""

    company_id: int


@dataclass(frozen=True)
class ClientOwned:
    """Integration belongs to a client and is shared with allowlisted companies."""

    client_id: int
    allowlisted_company_ids: FrozenSet[int] = frozenset()

    def __post_init__(self):
        # accept any iterable, store a frozenset
        object.__setattr__(
            self, "allowlisted_company_ids", frozenset(self.allowlisted_company_ids)
        )


@dataclass(frozen=True)
class GroupOwned:
    """Integration belongs to a group; membership is checked elsewhere."""

    group_id: int


Ownership = Union[CompanyOwned, ClientOwned, GroupOwned]


@dataclass(frozen=True)
class Principal:
    """The caller of an operation, as supplied by the identity service."""

    company_id: Optional[int] = None
    client_id: Optional[int] = None
    is_platform_admin: bool = False
    user_id: Optional[str] = None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Integration:
    """A configured connection to one external platform, owned by one tenant."""

    id: int
    name: str
    kind: PlatformKind
    ownership: Ownership
    configuration: Dict[str, str] = field(default_factory=dict)
    description: str = ""
    is_active: bool = True
    is_deleted: bool = False
    created_at: datetime = field(default_factory=utc_now)
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Integration":
        """Build an integration from a YAML/JSON mapping.

        Ownership is read from an ``owner`` mapping when present, otherwise
        from the top-level ``company_id`` / ``client_id`` / ``group_id`` keys.

        Raises:
            ValueError: If a required key is missing or ownership is ambiguous
        """
        for key in ("id", "name"):
            if key not in data:
                raise ValueError(f"Integration is missing required key '{key}'")
        kind = data.get("kind") or data.get("type")
        if not kind:
            raise ValueError(f"Integration '{data['name']}' is missing 'kind'")

        return cls(
            id=int(data["id"]),
            name=str(data["name"]),
            kind=PlatformKind.parse(kind),
            ownership=ownership_from_dict(data.get("owner") or data),
            configuration=stringify_configuration(data.get("configuration") or {}),
            description=str(data.get("description") or ""),
            is_active=bool(data.get("is_active", True)),
        )


def stringify_configuration(values: Mapping[str, Any]) -> Dict[str, str]:
    """Connector configuration is a string map; YAML scalars are converted."""
    result = {}
    for key, value in values.items():
        if value is None:
            continue
        if isinstance(value, bool):
            result[str(key)] = "true" if value else "false"
        elif isinstance(value, (list, tuple)):
            result[str(key)] = ",".join(str(v) for v in value)
        else:
            result[str(key)] = str(value)
    return result


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _int_set(values: Optional[Iterable[Any]]) -> FrozenSet[int]:
    if values is None:
        return frozenset()
    if isinstance(values, str):
        values = [v for v in values.split(",") if v.strip()]
    return frozenset(int(v) for v in values)


def ownership_from_dict(data: Mapping[str, Any]) -> Ownership:
    """Build the ownership variant named by ``data``.

    Raises:
        ValueError: If no owner or more than one owner is given
    """
    company_id = _first(data, "company_id", "companyId")
    client_id = _first(data, "client_id", "clientId")
    group_id = _first(data, "group_id", "groupId")

    owners = [v for v in (company_id, client_id, group_id) if v is not None]
    if len(owners) != 1:
        raise ValueError(
            "Exactly one of company_id, client_id or group_id must be set, "
            f"got {len(owners)}"
        )

    if company_id is not None:
        return CompanyOwned(int(company_id))
    if client_id is not None:
        allowlist = _first(
            data,
            "allowlisted_company_ids",
            "allowlistedCompanyIds",
            "available_company_ids",
        )
        return ClientOwned(int(client_id), _int_set(allowlist))
    return GroupOwned(int(group_id))

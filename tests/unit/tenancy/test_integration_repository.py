"""Tests for integration models and the in-memory repository."""

import pytest

from puod.connectors.base import PlatformKind
from puod.tenancy import (
    ClientOwned,
    CompanyOwned,
    GroupOwned,
    InMemoryIntegrationRepository,
    Integration,
    load_integrations,
)
from puod.tenancy.models import ownership_from_dict, stringify_configuration


class TestModels:
    def test_from_dict_with_owner_mapping(self):
        integration = Integration.from_dict(
            {
                "id": 4,
                "name": "Shared Airflow",
                "kind": "airflow",
                "owner": {"clientId": 7, "allowlistedCompanyIds": [5, "6"]},
                "configuration": {"base_url": "https://af", "verify": True, "port": 8080},
            }
        )

        assert integration.kind is PlatformKind.WORKFLOW_ORCHESTRATOR
        assert integration.ownership == ClientOwned(7, frozenset({5, 6}))
        assert integration.configuration == {
            "base_url": "https://af",
            "verify": "true",
            "port": "8080",
        }
        assert integration.is_active

    def test_from_dict_with_top_level_owner(self):
        integration = Integration.from_dict(
            {"id": "2", "name": "wh", "type": "warehouse", "company_id": 5}
        )

        assert integration.id == 2
        assert integration.ownership == CompanyOwned(5)

    def test_from_dict_requires_kind(self):
        with pytest.raises(ValueError, match="kind"):
            Integration.from_dict({"id": 1, "name": "x", "company_id": 1})

    def test_ownership_requires_exactly_one_owner(self):
        with pytest.raises(ValueError):
            ownership_from_dict({})
        with pytest.raises(ValueError):
            ownership_from_dict({"company_id": 1, "group_id": 2})
        assert ownership_from_dict({"groupId": 3}) == GroupOwned(3)

    def test_allowlist_from_comma_string(self):
        ownership = ownership_from_dict({"client_id": 1, "available_company_ids": "5, 6"})
        assert ownership.allowlisted_company_ids == frozenset({5, 6})

    def test_stringify_configuration(self):
        assert stringify_configuration(
            {"a": False, "b": ["x", "y"], "c": None, "d": 1.5}
        ) == {"a": "false", "b": "x,y", "d": "1.5"}


class TestInMemoryRepository:
    def test_create_assigns_increasing_ids(self):
        repository = InMemoryIntegrationRepository()
        first = repository.create("a", "airflow", CompanyOwned(1))
        second = repository.create("b", "glue", CompanyOwned(1), {"region": "eu-west-1"})

        assert (first.id, second.id) == (1, 2)
        assert second.kind is PlatformKind.CLOUD_PIPELINE
        assert repository.get(2).configuration == {"region": "eu-west-1"}

    def test_create_continues_after_loaded_ids(self):
        repository = load_integrations(
            [{"id": 10, "name": "x", "kind": "glue", "company_id": 1}]
        )
        created = repository.create("y", "glue", CompanyOwned(1))

        assert created.id == 11

    def test_duplicate_id_rejected(self):
        entries = [
            {"id": 1, "name": "x", "kind": "glue", "company_id": 1},
            {"id": 1, "name": "y", "kind": "glue", "company_id": 1},
        ]
        with pytest.raises(ValueError, match="Duplicate"):
            load_integrations(entries)

    def test_load_reports_entry_position(self):
        with pytest.raises(ValueError, match="entry #2"):
            load_integrations(
                [
                    {"id": 1, "name": "x", "kind": "glue", "company_id": 1},
                    {"id": 2, "name": "y", "kind": "mainframe", "company_id": 1},
                ]
            )

    def test_update_fields_and_allowlist(self):
        repository = InMemoryIntegrationRepository()
        integration = repository.create("a", "airflow", ClientOwned(7, {5}))

        updated = repository.update(
            integration.id,
            name="renamed",
            allowlisted_company_ids=[5, 6],
            is_active=False,
        )

        assert updated.name == "renamed"
        assert updated.ownership == ClientOwned(7, {5, 6})
        assert not updated.is_active
        assert updated.updated_at is not None

    def test_allowlist_on_company_owned_rejected(self):
        repository = InMemoryIntegrationRepository()
        integration = repository.create("a", "airflow", CompanyOwned(5))

        with pytest.raises(ValueError):
            repository.update(integration.id, allowlisted_company_ids=[6])

    def test_soft_delete(self):
        repository = InMemoryIntegrationRepository()
        integration = repository.create("a", "airflow", CompanyOwned(5))

        repository.soft_delete(integration.id)

        assert repository.get(integration.id).is_deleted
        assert repository.get(integration.id).deleted_at is not None
        assert repository.list_all() == []
        assert len(repository.list_all(include_deleted=True)) == 1
        with pytest.raises(KeyError):
            repository.update(integration.id, name="again")
        with pytest.raises(KeyError):
            repository.soft_delete(integration.id)

"""Tests for CRM adapters: fetching, unwrapping and candidate extraction."""

from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from cellsync.integrations.crm import (
    ADAPTERS,
    AgencyZoomAdapter,
    AttioAdapter,
    CRMActionError,
    Dynamics365Adapter,
    HubSpotAdapter,
    SalesforceAdapter,
    ZendeskAdapter,
    ZohoAdapter,
    get_adapter,
)
from cellsync.integrations.domain import CRM_CONFIGS, CRMType


def ok(data: Any) -> dict[str, Any]:
    return {"successful": True, "data": data, "error": None}


def failed(error: str, data: Any = None) -> dict[str, Any]:
    return {"successful": False, "data": data, "error": error}


@pytest.fixture
def composio() -> AsyncMock:
    return AsyncMock()


def test_every_crm_has_an_adapter(composio: AsyncMock) -> None:
    assert set(ADAPTERS) == set(CRMType)
    for crm_type in CRMType:
        adapter = get_adapter(crm_type, composio)
        assert adapter.config is CRM_CONFIGS[crm_type]


class TestBaseBehaviour:
    @pytest.mark.asyncio
    async def test_failed_action_raises_with_upstream_message(self, composio: AsyncMock) -> None:
        composio.execute_action.return_value = failed("Token expired", {"statusCode": 401})

        with pytest.raises(CRMActionError) as exc_info:
            await SalesforceAdapter(composio).fetch_raw_contacts("conn-1")

        assert exc_info.value.upstream_message == "Token expired"
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_records_without_phones_are_dropped(self, composio: AsyncMock) -> None:
        composio.execute_action.return_value = ok(
            {
                "records": [
                    {"Id": "1", "Phone": "514-979-1879"},
                    {"Id": "2", "Phone": "  ", "MobilePhone": None},
                    {"Id": "3", "MobilePhone": "+12015550123"},
                ]
            }
        )

        records = await SalesforceAdapter(composio).fetch_raw_contacts("conn-1")

        assert [r["Id"] for r in records] == ["1", "3"]

    @pytest.mark.parametrize(
        "data, expected",
        [
            ([{"Id": "1"}], 1),
            ({"records": [{"Id": "1"}, {"Id": "2"}]}, 2),
            ({"Id": "1", "Phone": "x"}, 1),
            ({"totalSize": 0}, 0),
            (None, 0),
            ("unexpected", 0),
        ],
    )
    def test_unwrap_records(self, composio: AsyncMock, data: Any, expected: int) -> None:
        assert len(SalesforceAdapter(composio)._unwrap_records(data)) == expected

    def test_identical_secondary_phone_is_dropped(self, composio: AsyncMock) -> None:
        record = {"Id": "1", "Phone": " 514-979-1879", "MobilePhone": "514-979-1879 "}

        candidates = SalesforceAdapter(composio).candidates_for(record)

        assert [c.raw_phone for c in candidates] == ["514-979-1879"]

    def test_differently_formatted_secondary_phone_is_kept(self, composio: AsyncMock) -> None:
        record = {"Id": "1", "Phone": "514-979-1879", "MobilePhone": "(514) 979-1879"}

        candidates = SalesforceAdapter(composio).candidates_for(record)

        assert [c.raw_phone for c in candidates] == ["514-979-1879", "(514) 979-1879"]


class TestHubSpot:
    @pytest.mark.asyncio
    async def test_fetch_requests_contact_properties(self, composio: AsyncMock) -> None:
        composio.execute_action.return_value = ok({"results": [{"id": "1", "properties": {"phone": "1"}}]})

        await HubSpotAdapter(composio).fetch_raw_contacts("conn-1")

        connection_id, action, params = composio.execute_action.call_args.args
        assert (connection_id, action) == ("conn-1", "HUBSPOT_LIST_CONTACTS")
        assert "mobilephone" in params["properties"]

    def test_candidates(self, composio: AsyncMock) -> None:
        record = {
            "id": 501,
            "properties": {
                "firstname": "Ada",
                "lastname": "Lovelace",
                "email": "ada@example.com",
                "phone": "514-979-1879",
                "mobilephone": "201-555-0123",
                "company": "Analytical Engines",
                "associatedcompanyid": 77,
            },
        }

        candidates = HubSpotAdapter(composio).candidates_for(record)

        assert [c.raw_phone for c in candidates] == ["514-979-1879", "201-555-0123"]
        assert candidates[0].attributes == {
            "hubspot_id": "501",
            "first_name": "Ada",
            "last_name": "Lovelace",
            "email": "ada@example.com",
            "company_id": "77",
            "company_name": "Analytical Engines",
        }
        assert candidates[0].display_name == "Ada Lovelace"
        assert candidates[0].external_id == "501"


class TestSalesforce:
    def test_attributes(self, composio: AsyncMock) -> None:
        record = {
            "Id": "003xx",
            "FirstName": "Grace",
            "LastName": None,
            "Email": "grace@example.com",
            "AccountId": "001xx",
            "Account": {"Name": "Navy"},
            "Phone": "2015550123",
        }

        [c] = SalesforceAdapter(composio).candidates_for(record)

        assert c.attributes["account_name"] == "Navy"
        assert c.attributes["salesforce_id"] == "003xx"
        assert c.display_name == "Grace"


class TestZoho:
    def test_company_falls_back_to_account_lookup(self, composio: AsyncMock) -> None:
        record = {"id": 9, "Account_Name": {"name": "Zylker"}, "Mobile": "2015550123"}

        [c] = ZohoAdapter(composio).candidates_for(record)

        assert c.attributes["company_name"] == "Zylker"
        assert c.attributes["zoho_id"] == "9"
        assert c.display_name == "Unknown Contact"


class TestAttio:
    RECORD = {
        "id": {"workspace_id": "w", "object_id": "obj-1", "record_id": "rec-1"},
        "values": {
            "name": [{"first_name": "Alan", "last_name": "Turing", "full_name": "Alan M. Turing"}],
            "email_addresses": [{"email_address": "alan@example.com"}],
            "job_title": [{"value": "Mathematician"}],
            "phone_numbers": [
                {"phone_number": "+12015550123"},
                {"phone_number": "+15149791879"},
                {"phone_number": "+12015550123"},
            ],
        },
    }

    def test_all_phone_numbers_become_candidates(self, composio: AsyncMock) -> None:
        candidates = AttioAdapter(composio).candidates_for(self.RECORD)

        assert [c.raw_phone for c in candidates] == ["+12015550123", "+15149791879"]
        assert candidates[0].attributes == {
            "attio_id": "rec-1",
            "first_name": "Alan",
            "last_name": "Turing",
            "email": "alan@example.com",
            "job_title": "Mathematician",
        }
        assert candidates[0].display_name == "Alan M. Turing"

    def test_id_falls_back_to_object_id(self, composio: AsyncMock) -> None:
        adapter = AttioAdapter(composio)

        assert adapter.external_id({"id": {"object_id": "obj-1"}}) == "obj-1"
        assert adapter.external_id({}) == "unknown"


class TestZendesk:
    @pytest.mark.asyncio
    async def test_pages_until_short_page(self, composio: AsyncMock) -> None:
        full_page = [{"id": i, "phone": f"+1201555{i:04d}"} for i in range(3)]
        composio.execute_action.side_effect = [
            ok({"users": full_page}),
            ok({"users": [{"id": 99, "phone": None}]}),
        ]

        with patch("cellsync.integrations.crm.zendesk.settings") as mock_settings:
            mock_settings.ZENDESK_PAGE_SIZE = 3
            mock_settings.ZENDESK_MAX_PAGES = 100
            users = await ZendeskAdapter(composio).fetch_raw_contacts("conn-1")

        assert len(users) == 3
        pages = [call.args[2]["page"] for call in composio.execute_action.call_args_list]
        assert pages == [1, 2]

    @pytest.mark.asyncio
    async def test_stops_at_page_limit(self, composio: AsyncMock) -> None:
        composio.execute_action.return_value = ok({"users": [{"id": 1, "phone": "+12015550123"}]})

        with patch("cellsync.integrations.crm.zendesk.settings") as mock_settings:
            mock_settings.ZENDESK_PAGE_SIZE = 1
            mock_settings.ZENDESK_MAX_PAGES = 4
            await ZendeskAdapter(composio).fetch_raw_contacts("conn-1")

        assert composio.execute_action.await_count == 4

    def test_display_name_fallbacks(self, composio: AsyncMock) -> None:
        adapter = ZendeskAdapter(composio)

        assert adapter.display_name({"id": 5, "email": "x@example.com"}) == "x@example.com"
        assert adapter.display_name({"id": 5, "phone": "+12015550123"}) == "+12015550123"
        assert adapter.display_name({"id": 5}) == "Zendesk User 5"

    def test_attributes_stringify_ids(self, composio: AsyncMock) -> None:
        attrs = ZendeskAdapter(composio).attributes({"id": 5, "organization_id": 12, "name": "N"})

        assert attrs == {"zendesk_id": "5", "name": "N", "email": None, "organization_id": "12"}


class TestAgencyZoom:
    @pytest.mark.asyncio
    async def test_merges_customers_and_leads(self, composio: AsyncMock) -> None:
        composio.execute_action.side_effect = [
            ok({"items": [{"customerId": 1, "phone": "2015550123"}]}),
            ok({"data": [{"leadId": 2, "phone": "", "secondaryPhone": "5149791879"}]}),
        ]

        records = await AgencyZoomAdapter(composio).fetch_raw_contacts("conn-1")

        assert len(records) == 2
        actions = [call.args[1] for call in composio.execute_action.call_args_list]
        assert actions == ["AGENCYZOOM_SEARCH_CUSTOMERS", "AGENCYZOOM_SEARCH_LEADS"]

    @pytest.mark.asyncio
    async def test_tolerates_one_failed_search(self, composio: AsyncMock) -> None:
        composio.execute_action.side_effect = [
            failed("leads? no, customers broke"),
            ok({"items": [{"leadId": 2, "phone": "2015550123"}]}),
        ]

        records = await AgencyZoomAdapter(composio).fetch_raw_contacts("conn-1")

        assert len(records) == 1

    @pytest.mark.asyncio
    async def test_both_searches_failing_raises(self, composio: AsyncMock) -> None:
        composio.execute_action.side_effect = [failed("unauthorized"), failed("unauthorized")]

        with pytest.raises(CRMActionError, match="unauthorized"):
            await AgencyZoomAdapter(composio).fetch_raw_contacts("conn-1")

    @pytest.mark.asyncio
    async def test_source_type_follows_the_search(self, composio: AsyncMock) -> None:
        composio.execute_action.side_effect = [
            ok({"items": [{"id": 7, "phone": "5149791879"}]}),
            ok({"leads": [{"id": 42, "phone": "2015550123"}]}),
        ]
        adapter = AgencyZoomAdapter(composio)

        customer, lead = await adapter.fetch_raw_contacts("conn-1")

        assert adapter.attributes(customer)["source_type"] == "customer"
        assert adapter.attributes(lead)["source_type"] == "lead"
        assert adapter.attributes(lead)["agencyzoom_id"] == "42"

    def test_source_type(self, composio: AsyncMock) -> None:
        adapter = AgencyZoomAdapter(composio)

        customer = adapter.attributes({"customerId": 1, "firstname": "A"})
        lead = adapter.attributes({"leadId": 2})
        business = adapter.attributes({"id": 3, "isBusiness": False})

        assert (customer["source_type"], customer["agencyzoom_id"]) == ("customer", "1")
        assert (lead["source_type"], lead["agencyzoom_id"]) == ("lead", "2")
        assert (business["source_type"], business["agencyzoom_id"]) == ("lead", "3")


class TestDynamics365:
    @pytest.mark.asyncio
    async def test_unwraps_odata_value(self, composio: AsyncMock) -> None:
        composio.execute_action.return_value = ok(
            {"value": [{"leadid": "L1", "telephone1": "2015550123", "fullname": "Jane Roe"}]}
        )
        adapter = Dynamics365Adapter(composio)

        [record] = await adapter.fetch_raw_contacts("conn-1")
        [c] = adapter.candidates_for(record)

        assert c.display_name == "Jane Roe"
        assert c.attributes["dynamics365_id"] == "L1"
        assert c.external_id == "L1"

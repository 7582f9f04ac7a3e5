"""Tests for hot leads and their promotion into customers."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from agentur_crm.core.exceptions import PermissionDeniedError, StoreError


class TestHotLeadStore:
    """Tests for HotLeadStore CRUD."""

    @pytest.mark.asyncio
    async def test_member_manages_leads(self, staff_services):
        store = staff_services.hot_leads()

        lead = await store.add({"name": "Yoga Studio Om", "source": "Messe"})
        await store.update(lead.id, {"priority": "Hoch"})

        assert store.get(lead.id).priority == "Hoch"

    @pytest.mark.asyncio
    async def test_kunde_has_no_access(self, portal_services):
        with pytest.raises(PermissionDeniedError):
            await portal_services.hot_leads().fetch_all()


class TestLeadPromotion:
    """Promotion creates the customer first, then removes the lead."""

    @pytest.mark.asyncio
    async def test_promote(self, staff_services, customer_repository, audit_repository, sample_lead):
        store = staff_services.hot_leads()
        await store.fetch_all()

        promotion = await store.promote(sample_lead.id)

        assert promotion.lead_removed is True
        assert store.records == []
        customer = promotion.customer
        assert customer.name == "Café Sonnenschein"
        assert customer.contact == "Lisa Sonne"
        assert customer.email == "lisa@cafe-sonnenschein.de"
        assert customer.priority == "Hoch"
        assert customer.notes == "Interesse an Social Media Betreuung"
        assert customer.booked_appointments == 0
        assert await customer_repository.count() == 1
        assert await staff_services.hot_lead_repo.get(sample_lead.id) is None

        actions = {(e.table_name, e.action) for e in await audit_repository.list_ordered()}
        assert actions == {("customers", "INSERT"), ("hot_leads", "DELETE")}

    @pytest.mark.asyncio
    async def test_failed_customer_creation_keeps_lead(
        self, staff_services, customer_repository, sample_lead, db_failure
    ):
        store = staff_services.hot_leads()

        with patch.object(staff_services.customer_repo, "commit", AsyncMock(side_effect=db_failure)):
            with pytest.raises(StoreError) as exc_info:
                await store.promote(sample_lead.id)

        assert exc_info.value.message == "Lead konnte nicht in einen Kunden umgewandelt werden."
        assert await customer_repository.count() == 0
        assert await staff_services.hot_lead_repo.get(sample_lead.id) is not None

    @pytest.mark.asyncio
    async def test_failed_lead_removal_can_be_completed(
        self, staff_services, customer_repository, sample_lead, db_failure
    ):
        store = staff_services.hot_leads()
        await store.fetch_all()

        with patch.object(staff_services.hot_lead_repo, "commit", AsyncMock(side_effect=db_failure)):
            promotion = await store.promote(sample_lead.id)

        assert promotion.lead_removed is False
        assert await customer_repository.count() == 1
        assert await staff_services.hot_lead_repo.get(sample_lead.id) is not None
        assert [lead.id for lead in store.records] == [sample_lead.id]

        promotion = await store.complete_promotion(promotion)

        assert promotion.lead_removed is True
        assert await staff_services.hot_lead_repo.get(sample_lead.id) is None
        assert await customer_repository.count() == 1
        assert store.records == []

    @pytest.mark.asyncio
    async def test_kunde_cannot_promote(self, portal_services, sample_lead):
        with pytest.raises(PermissionDeniedError):
            await portal_services.hot_leads().promote(sample_lead.id)

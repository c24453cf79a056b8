"""
PropRecon - Auto-Finalize Sweep Tests

Scheduled promotion of preview reconciliations to draft.
"""

import importlib.util
from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

import pytest
from sqlalchemy import update

from proprecon.models import (
    AuditAction,
    MonthlyReconciliation,
    ReconciliationLineItem,
    ReconciliationStatus,
)
from proprecon.models.reconciliation import LineItemType
from proprecon.services.reconciliation_service import ReconciliationService
from tests.fixtures.factories import make_mid_term_booking, make_short_term_booking


FEBRUARY_3 = date(2025, 2, 3)


class TestAutoFinalizeSweep:

    @pytest.mark.asyncio
    async def test_ended_preview_is_finalized(self, db_session, preview_reconciliation, january_bookings, max_policy_settings):
        service = ReconciliationService(db_session, settings=max_policy_settings)

        sweep = await service.auto_finalize_previews(today=FEBRUARY_3)

        assert sweep.finalized_count == 1
        assert sweep.failed_count == 0
        assert sweep.skipped_count == 0

        result = sweep.results[0]
        assert result.id == preview_reconciliation.id
        assert result.success is True
        assert result.property == "Lakeview Cottage"
        assert result.revenue == Decimal("4000.00")
        assert result.new_items == 3

        recon = await service.get_reconciliation(preview_reconciliation.id)
        assert recon.status == ReconciliationStatus.DRAFT
        assert recon.net_to_owner == Decimal("3400.00")

        trail = await service.get_audit_trail(preview_reconciliation.id)
        assert [entry.action for entry in trail] == [AuditAction.AUTO_FINALIZED]
        assert trail[0].previous_values["status"] == "preview"
        assert trail[0].new_values["status"] == "draft"
        assert trail[0].user_id is None

    @pytest.mark.asyncio
    async def test_current_month_preview_is_left_alone(self, db_session, preview_reconciliation, max_policy_settings):
        service = ReconciliationService(db_session, settings=max_policy_settings)

        sweep = await service.auto_finalize_previews(today=date(2025, 1, 31))

        assert sweep.results == []
        recon = await service.get_reconciliation(preview_reconciliation.id)
        assert recon.status == ReconciliationStatus.PREVIEW

    @pytest.mark.asyncio
    async def test_second_run_changes_nothing(self, db_session, preview_reconciliation, january_bookings, max_policy_settings):
        service = ReconciliationService(db_session, settings=max_policy_settings)

        await service.auto_finalize_previews(today=FEBRUARY_3)
        items_after_first = len(await service.get_line_items(preview_reconciliation.id))

        second = await service.auto_finalize_previews(today=FEBRUARY_3)

        assert second.finalized_count == 0
        assert len(await service.get_line_items(preview_reconciliation.id)) == items_after_first

        # Recomputing the draft directly appends nothing either
        outcome = await service.finalize_reconciliation(preview_reconciliation.id, today=FEBRUARY_3)
        assert outcome.new_items == 0
        assert outcome.reconciliation.total_revenue == Decimal("4000.00")
        assert outcome.reconciliation.net_to_owner == Decimal("3400.00")

    @pytest.mark.asyncio
    async def test_existing_items_kept_and_counted(self, db_session, preview_reconciliation, january_bookings, max_policy_settings):
        """Items written by the preview job stay as they are and count in totals."""
        booking, _ = january_bookings
        db_session.add(ReconciliationLineItem(
            id=uuid4(),
            reconciliation_id=preview_reconciliation.id,
            item_type=LineItemType.BOOKING,
            item_id=str(booking.id),
            description="Jordan Ellis - Lakeview Cottage",
            amount=Decimal("950.00"),
            date=booking.check_in,
            verified=True,
            excluded=False,
            source="preview",
        ))
        await db_session.commit()
        service = ReconciliationService(db_session, settings=max_policy_settings)

        sweep = await service.auto_finalize_previews(today=FEBRUARY_3)

        # mid-term lease and order minimum only
        assert sweep.results[0].new_items == 2
        recon = await service.get_reconciliation(preview_reconciliation.id)
        assert recon.short_term_revenue == Decimal("950.00")
        assert recon.total_revenue == Decimal("3950.00")

    @pytest.mark.asyncio
    async def test_failure_is_isolated(self, db_session, test_property, orphan_property, january_bookings, max_policy_settings):
        """One bad record does not stop the others."""
        broken = MonthlyReconciliation(
            id=uuid4(),
            property_id=orphan_property.id,
            reconciliation_month=date(2024, 12, 1),
            status=ReconciliationStatus.PREVIEW,
        )
        healthy = MonthlyReconciliation(
            id=uuid4(),
            property_id=test_property.id,
            owner_id=test_property.owner_id,
            reconciliation_month=date(2025, 1, 1),
            status=ReconciliationStatus.PREVIEW,
        )
        db_session.add_all([broken, healthy])
        await db_session.commit()
        broken_id, healthy_id = broken.id, healthy.id
        service = ReconciliationService(db_session, settings=max_policy_settings)

        sweep = await service.auto_finalize_previews(today=FEBRUARY_3)

        assert sweep.finalized_count == 1
        assert sweep.failed_count == 1
        results = {r.id: r for r in sweep.results}
        assert results[broken_id].success is False
        assert "no owner" in results[broken_id].error
        assert results[healthy_id].success is True

        assert (await service.get_reconciliation(broken_id)).status == ReconciliationStatus.PREVIEW
        assert (await service.get_reconciliation(healthy_id)).status == ReconciliationStatus.DRAFT
        assert await service.get_audit_trail(broken_id) == []

    @pytest.mark.asyncio
    async def test_record_claimed_elsewhere_is_skipped(self, db_session, test_property, preview_reconciliation, max_policy_settings, monkeypatch):
        """A record that left preview after it was listed is reported as skipped."""
        service = ReconciliationService(db_session, settings=max_policy_settings)
        reconciliation_id = preview_reconciliation.id

        async def stale_listing(today):
            return [reconciliation_id]

        # Another worker finalized it between listing and processing
        await service.finalize_reconciliation(reconciliation_id, today=FEBRUARY_3)
        monkeypatch.setattr(service, "_list_finalizable_preview_ids", stale_listing)

        sweep = await service.auto_finalize_previews(today=FEBRUARY_3)

        assert sweep.skipped_count == 1
        assert sweep.failed_count == 0
        assert sweep.finalized_count == 0
        actions = [entry.action for entry in await service.get_audit_trail(reconciliation_id)]
        assert actions == [AuditAction.FINALIZED]

    @pytest.mark.asyncio
    async def test_status_claimed_after_listing_is_skipped(self, db_session, preview_reconciliation, january_bookings, max_policy_settings, monkeypatch):
        """The guarded status update refuses a record moved by another worker."""
        service = ReconciliationService(db_session, settings=max_policy_settings)
        reconciliation_id = preview_reconciliation.id

        async def listing_then_concurrent_claim(today):
            await db_session.execute(
                update(MonthlyReconciliation)
                .where(MonthlyReconciliation.id == reconciliation_id)
                .values(status=ReconciliationStatus.DRAFT)
                .execution_options(synchronize_session=False)
            )
            await db_session.commit()
            return [reconciliation_id]

        monkeypatch.setattr(service, "_list_finalizable_preview_ids", listing_then_concurrent_claim)

        sweep = await service.auto_finalize_previews(today=FEBRUARY_3)

        assert sweep.skipped_count == 1
        assert sweep.finalized_count == 0
        assert sweep.failed_count == 0
        assert await service.get_line_items(reconciliation_id) == []
        assert await service.get_audit_trail(reconciliation_id) == []
        assert (await service.get_reconciliation(reconciliation_id)).status == ReconciliationStatus.DRAFT

    @pytest.mark.asyncio
    async def test_stored_duplicate_booking_not_double_counted(self, db_session, test_property, preview_reconciliation, max_policy_settings):
        """A stay stored by the preview that duplicates an active lease is excluded."""
        stay = make_short_term_booking(
            test_property.id, guest_name="Morgan Reyes", cleaning_fee=Decimal("100.00")
        )
        lease = make_mid_term_booking(test_property.id)
        db_session.add_all([stay, lease])
        db_session.add_all([
            ReconciliationLineItem(
                id=uuid4(),
                reconciliation_id=preview_reconciliation.id,
                item_type=LineItemType.BOOKING,
                item_id=str(stay.id),
                description="Morgan Reyes - Lakeview Cottage",
                amount=Decimal("1000.00"),
                date=stay.check_in,
                verified=False,
                excluded=False,
                source="preview",
            ),
            ReconciliationLineItem(
                id=uuid4(),
                reconciliation_id=preview_reconciliation.id,
                item_type=LineItemType.PASS_THROUGH_FEE,
                item_id=f"{stay.id}_cleaning",
                description="Cleaning Fee - Morgan Reyes",
                amount=Decimal("-100.00"),
                date=stay.check_in,
                verified=False,
                excluded=False,
                source="preview",
            ),
        ])
        await db_session.commit()
        stay_id, lease_id = str(stay.id), lease.id
        service = ReconciliationService(db_session, settings=max_policy_settings)

        sweep = await service.auto_finalize_previews(today=FEBRUARY_3)

        assert sweep.finalized_count == 1
        recon = await service.get_reconciliation(preview_reconciliation.id)
        assert recon.short_term_revenue == Decimal("0.00")
        assert recon.mid_term_revenue == Decimal("3000.00")
        assert recon.total_revenue == Decimal("3000.00")
        assert recon.pass_through_fees == Decimal("0.00")
        assert recon.management_fee == Decimal("450.00")
        assert recon.net_to_owner == Decimal("2550.00")

        items = await service.get_line_items(preview_reconciliation.id)
        stored = {item.item_id: item for item in items}
        for item_id in (stay_id, f"{stay_id}_cleaning"):
            assert stored[item_id].excluded is True
            assert stored[item_id].exclusion_reason == f"duplicate of mid-term lease {lease_id}"


class TestAutoFinalizeScript:

    @pytest.mark.asyncio
    async def test_default_date_comes_from_business_timezone(self, db_session, preview_reconciliation, monkeypatch):
        """Without a date argument the script lets the service pick today."""
        script_path = Path(__file__).resolve().parents[1] / "scripts" / "run_auto_finalize.py"
        spec = importlib.util.spec_from_file_location("run_auto_finalize", script_path)
        script = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(script)

        @asynccontextmanager
        async def session_maker():
            yield db_session

        monkeypatch.setattr(script, "async_session_maker", session_maker)
        # Still January in the business timezone
        monkeypatch.setattr(ReconciliationService, "_today", lambda self: date(2025, 1, 31))

        sweep = await script.run_sweep()

        assert sweep.results == []
        recon = await ReconciliationService(db_session).get_reconciliation(preview_reconciliation.id)
        assert recon.status == ReconciliationStatus.PREVIEW

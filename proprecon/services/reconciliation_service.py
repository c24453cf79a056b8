"""
PropRecon - Reconciliation Service

Lifecycle of monthly reconciliations:
- Creation of a draft for a property and month
- Scheduled sweep finalizing preview records once their month has ended
- On-demand finalize of a single record
- Deletion of drafts
- Line item review (verified flag)
- Audit trail

Each create or finalize is a single unit of work: the record, its new line
items, the property's cached rates and the audit entry commit together or
not at all.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo

from sqlalchemy import select, update, delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from proprecon.config import Settings, get_settings
from proprecon.models.property import Property, PropertyOwner
from proprecon.models.reconciliation import (
    AuditAction,
    MonthlyReconciliation,
    ReconciliationAuditLog,
    ReconciliationLineItem,
    ReconciliationStatus,
)
from proprecon.services.booking_sources import BookingSourceReader
from proprecon.services.deduplication import Deduplicator
from proprecon.services.fee_calculator import (
    FeeBreakdown,
    ManagementFeePolicy,
    NightlyRate,
    calculate_average_nightly_rate,
    calculate_management_fee,
    calculate_net_to_owner,
    determine_order_minimum_fee,
)
from proprecon.services.line_items import (
    LedgerTotals,
    LineItemSynthesizer,
    exclude_duplicate_bookings,
    existing_keys,
    summarize_line_items,
)
from proprecon.services.proration import month_bounds, month_start, prorate_mid_term_booking
from proprecon.utils.error_handling import (
    CannotDeleteException,
    CannotModifyException,
    DataIntegrityException,
    LineItemNotFoundException,
    MonthNotEndedException,
    PersistenceFailureException,
    ReconciliationConflictException,
    ReconciliationNotFoundException,
    StatusConflictException,
)
from proprecon.utils.money import to_decimal, to_money

logger = logging.getLogger(__name__)


# Statuses the engine may (re)compute; later ones belong to billing
FINALIZABLE_STATUSES = (ReconciliationStatus.PREVIEW, ReconciliationStatus.DRAFT)

SNAPSHOT_FIELDS = (
    "short_term_revenue",
    "mid_term_revenue",
    "total_revenue",
    "pass_through_fees",
    "visit_fees",
    "total_expenses",
    "management_fee",
    "order_minimum_fee",
    "net_to_owner",
    "nightly_rate",
)


@dataclass
class ComputedMonth:
    """Everything derived from the source data for one reconciliation."""
    new_items: List[ReconciliationLineItem]
    nightly: NightlyRate
    order_minimum_fee: Decimal
    totals: LedgerTotals
    fees: FeeBreakdown
    net_to_owner: Decimal
    excluded_booking_count: int = 0


@dataclass
class CreateOutcome:
    reconciliation: MonthlyReconciliation
    line_item_count: int


@dataclass
class FinalizeOutcome:
    reconciliation: MonthlyReconciliation
    property_name: str
    new_items: int
    previous_status: ReconciliationStatus


@dataclass
class SweepItemResult:
    """Outcome of one record in the finalize sweep."""
    id: uuid.UUID
    success: bool
    skipped: bool = False
    property: Optional[str] = None
    revenue: Optional[Decimal] = None
    new_items: Optional[int] = None
    error: Optional[str] = None


@dataclass
class SweepResult:
    results: List[SweepItemResult] = field(default_factory=list)

    @property
    def finalized_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.results if not r.success and not r.skipped)

    @property
    def skipped_count(self) -> int:
        return sum(1 for r in self.results if r.skipped)


def _snapshot(recon: MonthlyReconciliation) -> Dict[str, Any]:
    """JSON-safe copy of a record's status and totals for the audit trail."""
    values: Dict[str, Any] = {
        "status": ReconciliationStatus(recon.status).value if recon.status else None,
    }
    for name in SNAPSHOT_FIELDS:
        value = getattr(recon, name)
        values[name] = str(value) if value is not None else None
    return values


class ReconciliationService:
    """Service for monthly reconciliation operations."""

    def __init__(
        self,
        db: AsyncSession,
        settings: Optional[Settings] = None,
        deduplicator: Optional[Deduplicator] = None,
    ):
        self.db = db
        self.settings = settings or get_settings()
        self.deduplicator = deduplicator or Deduplicator()
        self.sources = BookingSourceReader(db)

    @property
    def fee_policy(self) -> ManagementFeePolicy:
        return ManagementFeePolicy(self.settings.management_fee_policy)

    def _today(self) -> date:
        """Current date in the business timezone."""
        return datetime.now(ZoneInfo(self.settings.timezone)).date()

    # ===========================================
    # READS
    # ===========================================

    async def get_reconciliation(self, reconciliation_id: uuid.UUID) -> MonthlyReconciliation:
        result = await self.db.execute(
            select(MonthlyReconciliation).where(MonthlyReconciliation.id == reconciliation_id)
        )
        recon = result.scalar_one_or_none()
        if recon is None:
            raise ReconciliationNotFoundException(reconciliation_id)
        return recon

    async def find_reconciliation(
        self,
        property_id: uuid.UUID,
        month: date,
    ) -> Optional[MonthlyReconciliation]:
        result = await self.db.execute(
            select(MonthlyReconciliation)
            .where(MonthlyReconciliation.property_id == property_id)
            .where(MonthlyReconciliation.reconciliation_month == month_start(month))
        )
        return result.scalar_one_or_none()

    async def list_reconciliations(
        self,
        property_id: Optional[uuid.UUID] = None,
        status: Optional[ReconciliationStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[MonthlyReconciliation]:
        """Reconciliations, newest month first."""
        query = select(MonthlyReconciliation)
        if property_id:
            query = query.where(MonthlyReconciliation.property_id == property_id)
        if status:
            query = query.where(MonthlyReconciliation.status == status)
        query = query.order_by(
            MonthlyReconciliation.reconciliation_month.desc(),
            MonthlyReconciliation.id,
        ).offset(offset).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def _load_line_items(self, reconciliation_id: uuid.UUID) -> List[ReconciliationLineItem]:
        result = await self.db.execute(
            select(ReconciliationLineItem)
            .where(ReconciliationLineItem.reconciliation_id == reconciliation_id)
            .order_by(ReconciliationLineItem.date, ReconciliationLineItem.item_type, ReconciliationLineItem.item_id)
        )
        return list(result.scalars().all())

    async def get_line_items(self, reconciliation_id: uuid.UUID) -> List[ReconciliationLineItem]:
        await self.get_reconciliation(reconciliation_id)
        return await self._load_line_items(reconciliation_id)

    async def get_audit_trail(self, reconciliation_id: uuid.UUID) -> List[ReconciliationAuditLog]:
        """Audit entries for a reconciliation, including deleted ones."""
        result = await self.db.execute(
            select(ReconciliationAuditLog)
            .where(ReconciliationAuditLog.reconciliation_id == reconciliation_id)
            .order_by(ReconciliationAuditLog.created_at)
        )
        return list(result.scalars().all())

    async def _get_property(self, property_id: uuid.UUID) -> Property:
        """Property and its owner; either missing makes the month unreconcilable."""
        result = await self.db.execute(select(Property).where(Property.id == property_id))
        prop = result.scalar_one_or_none()
        if prop is None:
            raise DataIntegrityException(
                f"Property '{property_id}' does not exist",
                details={"property_id": str(property_id)},
            )

        if prop.owner_id is None:
            raise DataIntegrityException(
                f"Property '{prop.name}' has no owner assigned",
                details={"property_id": str(property_id)},
            )
        owner = await self.db.get(PropertyOwner, prop.owner_id)
        if owner is None:
            raise DataIntegrityException(
                f"Owner '{prop.owner_id}' of property '{prop.name}' does not exist",
                details={"property_id": str(property_id), "owner_id": str(prop.owner_id)},
            )
        return prop

    # ===========================================
    # COMPUTATION
    # ===========================================

    async def _compute_month(
        self,
        reconciliation_id: uuid.UUID,
        prop: Property,
        month: date,
        existing_items: Sequence[ReconciliationLineItem] = (),
    ) -> ComputedMonth:
        """
        Read the month's sources and derive new line items, totals and fees.

        Totals cover existing plus new items, so a recompute that adds
        nothing leaves every amount unchanged.
        """
        first, last = month_bounds(month)

        bookings = await self.sources.read_bookings(prop.id, first, last)
        split = self.deduplicator.split(bookings.short_term, bookings.mid_term)

        leases = []
        for booking in bookings.mid_term:
            prorated = prorate_mid_term_booking(booking, first)
            if prorated is not None:
                leases.append(prorated)

        nightly = calculate_average_nightly_rate(split.kept)
        is_listed = (
            prop.first_listing_live_at is not None
            or not self.settings.waive_minimum_for_unlisted_properties
        )
        order_minimum_fee = determine_order_minimum_fee(
            nightly.rate, bookings.has_mid_term, is_listed=is_listed
        )

        costs = await self.sources.read_costs(prop.id, first, last)

        synthesizer = LineItemSynthesizer(
            reconciliation_id,
            first,
            existing=existing_keys(existing_items),
        )
        synthesizer.add_bookings(split.kept)
        synthesizer.add_mid_term_bookings(leases)
        synthesizer.add_expenses(costs.expenses)
        synthesizer.add_visits(costs.visits)
        synthesizer.add_order_minimum(order_minimum_fee, nightly.rate)

        exclude_duplicate_bookings(existing_items, split.duplicate_of)
        totals = summarize_line_items(list(existing_items) + synthesizer.items)

        fee_percentage = prop.management_fee_percentage
        if fee_percentage is None:
            fee_percentage = self.settings.default_management_fee_percentage
        fees = calculate_management_fee(
            totals.total_revenue,
            to_decimal(fee_percentage),
            order_minimum_fee,
            self.fee_policy,
        )
        net = calculate_net_to_owner(
            totals.total_revenue, totals.total_expenses, totals.visit_fees, fees
        )

        return ComputedMonth(
            new_items=synthesizer.items,
            nightly=nightly,
            order_minimum_fee=order_minimum_fee,
            totals=totals,
            fees=fees,
            net_to_owner=net,
            excluded_booking_count=len(split.excluded),
        )

    def _apply(self, recon: MonthlyReconciliation, computed: ComputedMonth) -> None:
        totals = computed.totals
        recon.short_term_revenue = totals.short_term_revenue
        recon.mid_term_revenue = totals.mid_term_revenue
        recon.total_revenue = to_money(totals.total_revenue)
        recon.pass_through_fees = totals.pass_through_fees
        recon.total_expenses = totals.total_expenses
        recon.visit_fees = totals.visit_fees
        recon.management_fee = computed.fees.management_fee
        recon.order_minimum_fee = computed.fees.order_minimum_fee
        recon.net_to_owner = computed.net_to_owner
        recon.nightly_rate = to_money(computed.nightly.rate) if computed.nightly.rate is not None else None
        recon.fee_policy = computed.fees.policy.value

    def _cache_property_rates(self, prop: Property, computed: ComputedMonth) -> None:
        prop.nightly_rate = (
            to_money(computed.nightly.rate) if computed.nightly.rate is not None else None
        )
        prop.order_minimum_fee = computed.order_minimum_fee

    def _audit(
        self,
        reconciliation_id: uuid.UUID,
        action: AuditAction,
        notes: Optional[str] = None,
        user_id: Optional[uuid.UUID] = None,
        item_id: Optional[str] = None,
        previous_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
    ) -> ReconciliationAuditLog:
        entry = ReconciliationAuditLog(
            id=uuid.uuid4(),
            reconciliation_id=reconciliation_id,
            action=action,
            notes=notes,
            user_id=user_id,
            item_id=item_id,
            previous_values=previous_values,
            new_values=new_values,
        )
        self.db.add(entry)
        return entry

    # ===========================================
    # CREATE
    # ===========================================

    async def _conflict_for(
        self,
        property_id: uuid.UUID,
        month: date,
    ) -> ReconciliationConflictException:
        existing = await self.find_reconciliation(property_id, month)
        return ReconciliationConflictException(
            property_id,
            month.isoformat(),
            existing_reconciliation_id=existing.id if existing else None,
            can_delete=bool(existing and existing.is_deletable),
        )

    async def create_reconciliation(
        self,
        property_id: uuid.UUID,
        month: date,
        user_id: Optional[uuid.UUID] = None,
    ) -> CreateOutcome:
        """
        Compute and persist a draft reconciliation for a property and month.

        Raises ReconciliationConflictException when one already exists,
        including when a concurrent create wins the unique constraint.
        """
        month = month_start(month)

        existing = await self.find_reconciliation(property_id, month)
        if existing is not None:
            raise ReconciliationConflictException(
                property_id,
                month.isoformat(),
                existing_reconciliation_id=existing.id,
                can_delete=existing.is_deletable,
            )

        prop = await self._get_property(property_id)

        recon = MonthlyReconciliation(
            id=uuid.uuid4(),
            property_id=prop.id,
            owner_id=prop.owner_id,
            reconciliation_month=month,
            status=ReconciliationStatus.DRAFT,
        )
        computed = await self._compute_month(recon.id, prop, month)
        self._apply(recon, computed)

        self.db.add(recon)
        self.db.add_all(computed.new_items)
        self._cache_property_rates(prop, computed)
        self._audit(
            recon.id,
            AuditAction.CREATED,
            notes=f"Created with {len(computed.new_items)} line items",
            user_id=user_id,
            new_values=_snapshot(recon),
        )

        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(
                f"Concurrent create for property {property_id} month {month}: {e.orig}"
            )
            raise await self._conflict_for(property_id, month) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceFailureException(
                f"Failed to save reconciliation for property '{property_id}' month {month}",
                original_error=e,
            ) from e

        await self.db.refresh(recon)

        logger.info(
            f"Created reconciliation {recon.id} for {prop.name} {month:%Y-%m}: "
            f"revenue={recon.total_revenue} fee={recon.management_fee} "
            f"order_minimum={recon.order_minimum_fee} net={recon.net_to_owner} "
            f"items={len(computed.new_items)} duplicates_excluded={computed.excluded_booking_count}"
        )
        return CreateOutcome(reconciliation=recon, line_item_count=len(computed.new_items))

    # ===========================================
    # FINALIZE
    # ===========================================

    async def _finalize(
        self,
        recon: MonthlyReconciliation,
        action: AuditAction,
        user_id: Optional[uuid.UUID] = None,
    ) -> FinalizeOutcome:
        """
        Recompute one reconciliation and move it to draft.

        The status change is claimed first with a guarded UPDATE; if another
        worker already moved the record, nothing is written and
        StatusConflictException is raised.
        """
        reconciliation_id = recon.id
        expected = ReconciliationStatus(recon.status)
        previous_values = _snapshot(recon)

        prop = await self._get_property(recon.property_id)

        claimed = await self.db.execute(
            update(MonthlyReconciliation)
            .where(MonthlyReconciliation.id == reconciliation_id)
            .where(MonthlyReconciliation.status == expected)
            .values(status=ReconciliationStatus.DRAFT)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount == 0:
            await self.db.rollback()
            raise StatusConflictException(reconciliation_id, expected.value)

        existing_items = await self._load_line_items(reconciliation_id)
        computed = await self._compute_month(
            reconciliation_id, prop, recon.reconciliation_month, existing_items
        )

        self.db.add_all(computed.new_items)
        self._apply(recon, computed)
        recon.status = ReconciliationStatus.DRAFT
        if recon.owner_id is None:
            recon.owner_id = prop.owner_id
        self._cache_property_rates(prop, computed)
        self._audit(
            reconciliation_id,
            action,
            notes=f"{expected.value} -> draft, {len(computed.new_items)} new line items",
            user_id=user_id,
            previous_values=previous_values,
            new_values=_snapshot(recon),
        )

        property_name = prop.name
        try:
            await self.db.commit()
        except IntegrityError as e:
            # Another worker appended the same natural keys first
            await self.db.rollback()
            raise StatusConflictException(reconciliation_id, expected.value) from e
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceFailureException(
                f"Failed to finalize reconciliation '{reconciliation_id}'",
                original_error=e,
            ) from e

        await self.db.refresh(recon)

        logger.info(
            f"Finalized reconciliation {reconciliation_id} ({property_name} "
            f"{recon.reconciliation_month:%Y-%m}) {expected.value} -> draft: "
            f"revenue={recon.total_revenue} net={recon.net_to_owner} "
            f"new_items={len(computed.new_items)}"
        )
        return FinalizeOutcome(
            reconciliation=recon,
            property_name=property_name,
            new_items=len(computed.new_items),
            previous_status=expected,
        )

    async def finalize_reconciliation(
        self,
        reconciliation_id: uuid.UUID,
        user_id: Optional[uuid.UUID] = None,
        today: Optional[date] = None,
    ) -> FinalizeOutcome:
        """
        Finalize one reconciliation on demand once its month has ended.

        Allowed from preview or draft; re-finalizing a draft only appends
        line items that are not present yet.
        """
        today = today or self._today()
        recon = await self.get_reconciliation(reconciliation_id)

        status = ReconciliationStatus(recon.status)
        if status not in FINALIZABLE_STATUSES:
            raise CannotModifyException(reconciliation_id, status.value)

        _, last = month_bounds(recon.reconciliation_month)
        if today <= last:
            raise MonthNotEndedException(f"{recon.reconciliation_month:%Y-%m}")

        return await self._finalize(recon, AuditAction.FINALIZED, user_id=user_id)

    async def _list_finalizable_preview_ids(self, today: date) -> List[uuid.UUID]:
        result = await self.db.execute(
            select(MonthlyReconciliation.id)
            .where(MonthlyReconciliation.status == ReconciliationStatus.PREVIEW)
            .where(MonthlyReconciliation.reconciliation_month < month_start(today))
            .order_by(MonthlyReconciliation.reconciliation_month, MonthlyReconciliation.id)
        )
        return list(result.scalars().all())

    async def auto_finalize_previews(self, today: Optional[date] = None) -> SweepResult:
        """
        Finalize every preview reconciliation whose month has ended.

        Records are processed one at a time, each in its own transaction. A
        failure is logged, rolled back and reported without stopping the
        sweep; a record another worker already moved is reported as skipped.
        """
        today = today or self._today()
        ids = await self._list_finalizable_preview_ids(today)
        logger.info(f"Auto-finalize sweep: {len(ids)} preview reconciliations before {month_start(today)}")

        sweep = SweepResult()
        for reconciliation_id in ids:
            try:
                recon = await self.get_reconciliation(reconciliation_id)
                if recon.status != ReconciliationStatus.PREVIEW:
                    raise StatusConflictException(reconciliation_id, ReconciliationStatus.PREVIEW.value)

                outcome = await self._finalize(recon, AuditAction.AUTO_FINALIZED)
                sweep.results.append(SweepItemResult(
                    id=reconciliation_id,
                    success=True,
                    property=outcome.property_name,
                    revenue=outcome.reconciliation.total_revenue,
                    new_items=outcome.new_items,
                ))
            except StatusConflictException as e:
                await self.db.rollback()
                logger.info(f"Skipping reconciliation {reconciliation_id}: {e.message}")
                sweep.results.append(SweepItemResult(
                    id=reconciliation_id,
                    success=False,
                    skipped=True,
                    error=e.message,
                ))
            except Exception as e:
                await self.db.rollback()
                logger.exception(f"Failed to auto-finalize reconciliation {reconciliation_id}")
                sweep.results.append(SweepItemResult(
                    id=reconciliation_id,
                    success=False,
                    error=getattr(e, "message", None) or str(e),
                ))

        logger.info(
            f"Auto-finalize sweep done: finalized={sweep.finalized_count} "
            f"failed={sweep.failed_count} skipped={sweep.skipped_count}"
        )
        return sweep

    # ===========================================
    # DELETE
    # ===========================================

    async def delete_reconciliation(
        self,
        reconciliation_id: uuid.UUID,
        user_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Delete a draft and its line items. The audit trail is kept."""
        recon = await self.get_reconciliation(reconciliation_id)
        status = ReconciliationStatus(recon.status)
        if status != ReconciliationStatus.DRAFT:
            raise CannotDeleteException(reconciliation_id, status.value)

        previous_values = _snapshot(recon)
        previous_values["property_id"] = str(recon.property_id)
        previous_values["reconciliation_month"] = recon.reconciliation_month.isoformat()

        await self.db.execute(
            delete(ReconciliationLineItem)
            .where(ReconciliationLineItem.reconciliation_id == reconciliation_id)
        )
        await self.db.execute(
            delete(MonthlyReconciliation).where(MonthlyReconciliation.id == reconciliation_id)
        )
        self._audit(
            reconciliation_id,
            AuditAction.DELETED,
            notes="Draft deleted",
            user_id=user_id,
            previous_values=previous_values,
        )

        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise PersistenceFailureException(
                f"Failed to delete reconciliation '{reconciliation_id}'",
                original_error=e,
            ) from e

        logger.info(f"Deleted draft reconciliation {reconciliation_id}")

    # ===========================================
    # LINE ITEM REVIEW
    # ===========================================

    async def set_line_item_verified(
        self,
        line_item_id: uuid.UUID,
        verified: bool,
        user_id: Optional[uuid.UUID] = None,
    ) -> ReconciliationLineItem:
        """Mark a line item as checked (or not). Amounts are never touched."""
        item = await self.db.get(ReconciliationLineItem, line_item_id)
        if item is None:
            raise LineItemNotFoundException(line_item_id)

        previous = item.verified
        if previous == verified:
            return item

        item.verified = verified
        self._audit(
            item.reconciliation_id,
            AuditAction.ITEM_VERIFIED,
            user_id=user_id,
            item_id=str(item.id),
            previous_values={"verified": previous},
            new_values={"verified": verified},
        )
        await self.db.commit()
        await self.db.refresh(item)
        return item


def get_reconciliation_service(db: AsyncSession) -> ReconciliationService:
    """Factory function for ReconciliationService."""
    return ReconciliationService(db)

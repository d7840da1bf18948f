"""
Module: ledger_kernel.selectors.reconciliation_selector
Responsibility: Read-only access to reconciliation reports: single report,
    filtered listing, and the period summary shown on the accounting
    overview.
Architecture position: Kernel > Selectors.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import distinct, func, or_, select

from ledger_kernel.domain.dtos import (
    Page,
    Period,
    ReconciliationFilter,
    ReconciliationReportRecord,
    ReconciliationSummary,
)
from ledger_kernel.models.reconciliation import ReconciliationReport, ReconciliationStatus
from ledger_kernel.selectors.base import BaseSelector

CLOSED_STATUSES = (ReconciliationStatus.COMPLETED, ReconciliationStatus.REVIEWED)


class ReconciliationSelector(BaseSelector):
    """Query reconciliation reports."""

    def get_report(self, report_id: UUID) -> ReconciliationReportRecord | None:
        report = self.session.get(ReconciliationReport, report_id)
        if report is None:
            return None
        return ReconciliationReportRecord.from_model(report)

    def list_reports(
        self, criteria: ReconciliationFilter | None = None
    ) -> Page[ReconciliationReportRecord]:
        """Filtered listing, newest period first."""
        criteria = criteria or ReconciliationFilter()
        query = select(ReconciliationReport)

        if criteria.account_id is not None:
            query = query.where(ReconciliationReport.account_id == criteria.account_id)
        if criteria.status is not None:
            query = query.where(
                ReconciliationReport.status == ReconciliationStatus(criteria.status)
            )
        if criteria.period_from is not None:
            query = query.where(ReconciliationReport.period_start >= criteria.period_from)
        if criteria.period_to is not None:
            query = query.where(ReconciliationReport.period_end <= criteria.period_to)
        if criteria.reconciled_by_id is not None:
            query = query.where(
                ReconciliationReport.reconciled_by_id == criteria.reconciled_by_id
            )
        if criteria.search:
            pattern = f"%{criteria.search.strip().lower()}%"
            query = query.where(
                or_(
                    func.lower(ReconciliationReport.report_number).like(pattern),
                    func.lower(func.coalesce(ReconciliationReport.notes, "")).like(pattern),
                )
            )

        total = self.session.execute(
            select(func.count()).select_from(query.subquery())
        ).scalar_one()

        reports = self.session.execute(
            query.order_by(
                ReconciliationReport.period_end.desc(),
                ReconciliationReport.report_number.desc(),
            )
            .limit(criteria.limit)
            .offset(criteria.offset)
        ).scalars().all()

        return Page(
            items=tuple(ReconciliationReportRecord.from_model(r) for r in reports),
            total=total,
            limit=criteria.limit,
            offset=criteria.offset,
        )

    def summary(self, period: Period | None = None) -> ReconciliationSummary:
        """
        Totals across reports whose period lies within ``period``.

        Completed counts COMPLETED and REVIEWED reports; everything else is
        pending.  accounts_reconciled counts distinct accounts with a closed
        report.
        """

        def scoped(query):
            if period is not None:
                query = query.where(
                    ReconciliationReport.period_start >= period.start,
                    ReconciliationReport.period_end <= period.end,
                )
            return query

        row = self.session.execute(
            scoped(
                select(
                    func.count(ReconciliationReport.id).label("total"),
                    func.coalesce(func.sum(ReconciliationReport.variance), 0).label("variance"),
                )
            )
        ).one()
        completed = self.session.execute(
            scoped(
                select(func.count(ReconciliationReport.id)).where(
                    ReconciliationReport.status.in_(CLOSED_STATUSES)
                )
            )
        ).scalar_one()
        accounts = self.session.execute(
            scoped(
                select(func.count(distinct(ReconciliationReport.account_id))).where(
                    ReconciliationReport.status.in_(CLOSED_STATUSES)
                )
            )
        ).scalar_one()

        total = row.total or 0
        total_variance = self._decimal(row.variance)
        average = total_variance / total if total else Decimal("0")
        return ReconciliationSummary(
            total_reports=total,
            completed_reports=completed,
            pending_reports=total - completed,
            total_variance=total_variance,
            average_variance=average,
            accounts_reconciled=accounts,
        )

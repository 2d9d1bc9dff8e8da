from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from desk_portal.auth import Principal
from desk_portal.models import RecordType, Submission, SubmissionCategoryLine
from desk_portal.services.catalog import REMITTANCE_CATEGORY_CODES

ZERO = Decimal('0.00')
ALL_RECORD_TYPES = 'all'


@dataclass(frozen=True)
class RemittanceEntry:
    submission: Submission
    amounts: dict[str, Decimal]

    @property
    def total(self) -> Decimal:
        return sum(self.amounts.values(), ZERO)


@dataclass
class RemittanceReport:
    entries: list[RemittanceEntry] = field(default_factory=list)

    @property
    def totals(self) -> dict[str, Decimal]:
        totals = {code: ZERO for code in REMITTANCE_CATEGORY_CODES}
        for entry in self.entries:
            for code in REMITTANCE_CATEGORY_CODES:
                totals[code] += entry.amounts[code]
        totals['total'] = sum((totals[code] for code in REMITTANCE_CATEGORY_CODES), ZERO)
        return totals


def parse_record_type_filter(raw: str | None) -> RecordType | None:
    value = (raw or ALL_RECORD_TYPES).strip()
    if value == ALL_RECORD_TYPES:
        return None
    try:
        return RecordType(value)
    except ValueError as exc:
        raise ValueError(f'Unknown record type filter: {value}') from exc


def _sent_amounts(db: Session, submission_ids: list[int]) -> dict[int, dict[str, Decimal]]:
    amounts: dict[int, dict[str, Decimal]] = {
        submission_id: {code: ZERO for code in REMITTANCE_CATEGORY_CODES} for submission_id in submission_ids
    }
    if not submission_ids:
        return amounts
    rows = db.execute(
        select(SubmissionCategoryLine).where(
            SubmissionCategoryLine.submission_id.in_(submission_ids),
            SubmissionCategoryLine.category_code.in_(REMITTANCE_CATEGORY_CODES),
        )
    ).scalars()
    for row in rows:
        amounts[row.submission_id][row.category_code] = Decimal(row.bank_sent_amount)
    return amounts


def build_remittance_report(
    db: Session,
    *,
    principal: Principal,
    record_type: RecordType | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> RemittanceReport:
    if start_date and end_date and start_date > end_date:
        raise ValueError('Start date cannot be after end date')

    query = (
        select(Submission)
        .where(Submission.bank_sent_total > 0)
        .order_by(Submission.business_date.desc(), Submission.submitted_at.desc())
    )
    if record_type is not None:
        query = query.where(Submission.record_type == record_type)
    if start_date:
        query = query.where(Submission.business_date >= start_date)
    if end_date:
        query = query.where(Submission.business_date <= end_date)
    if not principal.is_reviewer:
        query = query.where(Submission.submitted_by_principal_id == principal.id)

    submissions = db.execute(query).scalars().all()
    amounts = _sent_amounts(db, [submission.id for submission in submissions])
    entries = [
        RemittanceEntry(submission=submission, amounts=amounts[submission.id])
        for submission in submissions
        if any(amount > 0 for amount in amounts[submission.id].values())
    ]
    return RemittanceReport(entries=entries)


def serialize_report(report: RemittanceReport) -> dict:
    return {
        'records': [
            {
                'id': str(entry.submission.id),
                'recordType': entry.submission.record_type.value,
                'date': entry.submission.business_date.isoformat(),
                'status': entry.submission.status.value,
                'submittedByEmail': entry.submission.submitted_by_email,
                'bankSentCash': {**entry.amounts, 'totalSent': entry.total},
            }
            for entry in report.entries
        ],
        'totals': report.totals,
        'count': len(report.entries),
    }

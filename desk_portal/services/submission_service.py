from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from desk_portal.auth import Principal, Role
from desk_portal.models import (
    RecordType,
    Submission,
    SubmissionCategoryLine,
    SubmissionDenominationLine,
    SubmissionProductLine,
    SubmissionReviewEvent,
    SubmissionStatus,
)
from desk_portal.services import denomination_ledger, workflow
from desk_portal.services.catalog import RecordCatalog, get_catalog
from desk_portal.services.reconciliation_math_service import (
    ZERO,
    Payments,
    ReconciliationInput,
    ReconciliationResult,
    compute_reconciliation,
    normalize_banknotes,
    normalize_credit_cards,
    normalize_products,
    to_money,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionInput:
    record_type: RecordType
    business_date: date
    products: dict[str, Decimal]
    credit_cards: dict[str, Decimal]
    payments: Payments
    banknotes: dict[str, dict[str, int]]
    bank_sent: dict[str, Decimal]

    def reconciliation_input(self) -> ReconciliationInput:
        return ReconciliationInput(
            record_type=self.record_type,
            products=self.products,
            credit_cards=self.credit_cards,
            payments=self.payments,
            banknotes=self.banknotes,
        )


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _parse_date(raw: object) -> date:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    text = str(raw or '').strip()
    if not text:
        raise ValueError('Date is required')
    try:
        return date.fromisoformat(text[:10])
    except ValueError as exc:
        raise ValueError(f'Invalid date: {text}') from exc


def _normalize_bank_sent(catalog: RecordCatalog, raw: Mapping[str, object] | None) -> dict[str, Decimal]:
    raw = dict(raw or {})
    # Echoed back by clients that reload a stored record for editing.
    raw.pop('totalSent', None)
    counted = catalog.counted_category_codes
    unknown = sorted(set(raw) - set(counted))
    if unknown:
        raise ValueError(f'Bank-sent amounts not accepted for: {", ".join(unknown)}')
    return {code: to_money(raw.get(code), label=f'{catalog.category(code).label} bankaya gönderilen') for code in counted}


def parse_submission_payload(record_type: RecordType | str, payload: Mapping[str, object]) -> SubmissionInput:
    catalog = get_catalog(record_type)
    raw_payments = payload.get('payments') or {}
    payments = Payments(
        starting_float=to_money(raw_payments.get('gunbasiNakit'), label='Gün başı nakit'),
        bank_deposit_manual=to_money(raw_payments.get('bankayaGonderilen'), label='Bankaya gönderilen'),
        carried_to_next_day=to_money(raw_payments.get('ertesiGuneBirakilan'), label='Ertesi güne bırakılan'),
    )
    return SubmissionInput(
        record_type=catalog.record_type,
        business_date=_parse_date(payload.get('date')),
        products=normalize_products(catalog, payload.get('products')),
        credit_cards=normalize_credit_cards(catalog, payload.get('categoryCreditCards')),
        payments=payments,
        banknotes=normalize_banknotes(catalog, payload.get('banknotes')),
        bank_sent=_normalize_bank_sent(catalog, payload.get('bankSentCash')),
    )


def _reconcile_for_persist(data: SubmissionInput) -> ReconciliationResult:
    result = compute_reconciliation(data.reconciliation_input())
    catalog = get_catalog(data.record_type)
    for split in result.split.categories:
        if split.overage > 0:
            label = catalog.category(split.category).label
            raise ValueError(
                f'Credit card amount for {label} ({split.credit_card}) exceeds category total ({split.gross_total})'
            )
    for check in result.mismatches:
        logger.warning(
            'Banknote count mismatch on %s/%s: cash=%s counted=%s',
            data.record_type.value,
            check.category,
            check.cash_portion,
            check.counted_total,
        )
    return result


def _write_lines(db: Session, *, submission: Submission, data: SubmissionInput, result: ReconciliationResult) -> None:
    catalog = get_catalog(data.record_type)
    db.execute(delete(SubmissionProductLine).where(SubmissionProductLine.submission_id == submission.id))
    db.execute(delete(SubmissionCategoryLine).where(SubmissionCategoryLine.submission_id == submission.id))
    db.execute(delete(SubmissionDenominationLine).where(SubmissionDenominationLine.submission_id == submission.id))

    db.add_all(
        [
            SubmissionProductLine(
                submission_id=submission.id,
                product_code=product.code,
                category_code=product.category,
                position=position,
                unit_price=product.unit_price,
                quantity=data.products[product.code],
                line_amount=(product.unit_price * data.products[product.code]).quantize(denomination_ledger.CENT),
            )
            for position, product in enumerate(catalog.products, start=1)
        ]
    )
    db.add_all(
        [
            SubmissionCategoryLine(
                submission_id=submission.id,
                category_code=split.category,
                position=position,
                gross_total=split.gross_total,
                credit_card_amount=split.credit_card,
                cash_amount=split.cash,
                bank_sent_amount=data.bank_sent.get(split.category, ZERO),
            )
            for position, split in enumerate(result.split.categories, start=1)
        ]
    )
    for category_code, counts in data.banknotes.items():
        db.add_all(
            [
                SubmissionDenominationLine(submission_id=submission.id, category_code=category_code, **line)
                for line in denomination_ledger.count_lines(counts)
            ]
        )


def _apply_totals(submission: Submission, data: SubmissionInput, result: ReconciliationResult) -> None:
    submission.business_date = data.business_date
    submission.starting_float = data.payments.starting_float
    submission.bank_deposit_manual = data.payments.bank_deposit_manual
    submission.carried_to_next_day = data.payments.carried_to_next_day
    submission.total_sales = result.total_sales
    submission.total_credit_card = result.split.total_credit_card
    submission.total_cash = result.split.total_cash
    submission.cash_in_register = result.register.cash_in_register
    submission.difference = result.register.difference
    submission.bank_sent_total = sum(data.bank_sent.values(), ZERO)


def _record_event(
    db: Session,
    *,
    submission: Submission,
    principal: Principal,
    event: str,
    from_status: SubmissionStatus | None,
    notes: str | None = None,
) -> None:
    db.add(
        SubmissionReviewEvent(
            submission_id=submission.id,
            actor_principal_id=principal.id,
            actor_email=principal.email,
            actor_role=principal.role.value,
            event=event,
            from_status=from_status.value if from_status else None,
            to_status=submission.status.value,
            notes=notes,
        )
    )


def create_submission(
    db: Session,
    *,
    principal: Principal,
    data: SubmissionInput,
) -> tuple[Submission, ReconciliationResult]:
    if principal.role != Role.DESK:
        raise PermissionError('Only desk users can submit records')

    result = _reconcile_for_persist(data)
    now = _now()
    submission = Submission(
        record_type=data.record_type,
        status=workflow.initial_status(),
        submitted_by_principal_id=principal.id,
        submitted_by_email=principal.email,
        submitted_at=now,
        revision_count=0,
        business_date=data.business_date,
        updated_at=now,
    )
    _apply_totals(submission, data, result)
    db.add(submission)
    db.flush()

    _write_lines(db, submission=submission, data=data, result=result)
    _record_event(db, submission=submission, principal=principal, event='submit', from_status=None)
    db.flush()
    return submission, result


def get_submission(
    db: Session,
    *,
    record_type: RecordType,
    submission_id: int,
    for_update: bool = False,
) -> Submission:
    query = select(Submission).where(Submission.id == submission_id, Submission.record_type == record_type)
    if for_update:
        query = query.with_for_update()
    submission = db.execute(query).scalar_one_or_none()
    if not submission:
        raise LookupError('Record not found')
    return submission


def assert_can_view(principal: Principal, submission: Submission) -> None:
    if principal.is_reviewer:
        return
    if submission.submitted_by_principal_id != principal.id:
        raise PermissionError('Not allowed to access this record')


def resubmit_submission(
    db: Session,
    *,
    principal: Principal,
    submission_id: int,
    data: SubmissionInput,
) -> tuple[Submission, ReconciliationResult]:
    submission = get_submission(db, record_type=data.record_type, submission_id=submission_id, for_update=True)
    if submission.submitted_by_principal_id != principal.id:
        raise PermissionError('Only the original submitter can resubmit this record')

    previous = submission.status
    target = workflow.resubmit_target(previous)
    result = _reconcile_for_persist(data)

    _apply_totals(submission, data, result)
    submission.status = target
    submission.revision_count += 1
    submission.updated_at = _now()
    _write_lines(db, submission=submission, data=data, result=result)
    _record_event(db, submission=submission, principal=principal, event='resubmit', from_status=previous)
    db.flush()
    return submission, result


def list_submissions(
    db: Session,
    *,
    principal: Principal,
    record_type: RecordType | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    status: SubmissionStatus | None = None,
) -> list[Submission]:
    if start_date and end_date and start_date > end_date:
        raise ValueError('Start date cannot be after end date')

    query = select(Submission).order_by(Submission.business_date.desc(), Submission.submitted_at.desc())
    if record_type is not None:
        query = query.where(Submission.record_type == record_type)
    if start_date:
        query = query.where(Submission.business_date >= start_date)
    if end_date:
        query = query.where(Submission.business_date <= end_date)
    if status is not None:
        query = query.where(Submission.status == status)
    if not principal.is_reviewer:
        query = query.where(Submission.submitted_by_principal_id == principal.id)
    return db.execute(query).scalars().all()


def _lines_by_submission(db: Session, model, submission_ids: list[int]) -> dict[int, list]:
    grouped: dict[int, list] = defaultdict(list)
    if not submission_ids:
        return grouped
    rows = db.execute(
        select(model).where(model.submission_id.in_(submission_ids)).order_by(model.submission_id.asc(), model.position.asc())
    ).scalars().all()
    for row in rows:
        grouped[row.submission_id].append(row)
    return grouped


def load_submission_input(db: Session, submission: Submission) -> SubmissionInput:
    """Rebuild the raw input of a stored record from its line tables."""
    products = _lines_by_submission(db, SubmissionProductLine, [submission.id])[submission.id]
    categories = _lines_by_submission(db, SubmissionCategoryLine, [submission.id])[submission.id]
    denominations = _lines_by_submission(db, SubmissionDenominationLine, [submission.id])[submission.id]
    return _input_from_lines(submission, products, categories, denominations)


def _input_from_lines(submission: Submission, products: list, categories: list, denominations: list) -> SubmissionInput:
    catalog = get_catalog(submission.record_type)
    banknotes: dict[str, dict[str, int]] = {}
    for line in denominations:
        banknotes.setdefault(line.category_code, denomination_ledger.empty_counts())[line.denomination_code] = line.quantity
    return SubmissionInput(
        record_type=submission.record_type,
        business_date=submission.business_date,
        products={line.product_code: Decimal(line.quantity) for line in products},
        credit_cards={line.category_code: Decimal(line.credit_card_amount) for line in categories},
        payments=Payments(
            starting_float=Decimal(submission.starting_float),
            bank_deposit_manual=Decimal(submission.bank_deposit_manual),
            carried_to_next_day=Decimal(submission.carried_to_next_day),
        ),
        banknotes={code: banknotes.get(code, denomination_ledger.empty_counts()) for code in catalog.counted_category_codes},
        bank_sent={
            line.category_code: Decimal(line.bank_sent_amount)
            for line in categories
            if line.category_code in catalog.counted_category_codes
        },
    )


def recompute_totals(db: Session, submission: Submission) -> ReconciliationResult:
    return compute_reconciliation(load_submission_input(db, submission).reconciliation_input())


def _quantity_out(value: Decimal) -> Decimal | int:
    value = Decimal(value)
    return int(value) if value == value.to_integral_value() else value.normalize()


def _serialize_one(
    submission: Submission,
    *,
    products: list,
    categories: list,
    denominations: list,
    events: list,
) -> dict:
    data = _input_from_lines(submission, products, categories, denominations)
    bank_sent = dict(data.bank_sent)
    bank_sent['totalSent'] = Decimal(submission.bank_sent_total)
    return {
        'id': str(submission.id),
        'recordType': submission.record_type.value,
        'date': submission.business_date.isoformat(),
        'products': {code: _quantity_out(qty) for code, qty in data.products.items()},
        'categoryCreditCards': data.credit_cards,
        'categories': [
            {
                'category': line.category_code,
                'grossTotal': line.gross_total,
                'creditCard': line.credit_card_amount,
                'cash': line.cash_amount,
                'bankSent': line.bank_sent_amount,
            }
            for line in categories
        ],
        'payments': {
            'gunbasiNakit': submission.starting_float,
            'bankayaGonderilen': submission.bank_deposit_manual,
            'ertesiGuneBirakilan': submission.carried_to_next_day,
        },
        'banknotes': data.banknotes,
        'bankSentCash': bank_sent,
        'totals': {
            'totalSales': submission.total_sales,
            'totalCreditCard': submission.total_credit_card,
            'totalCash': submission.total_cash,
            'cashInRegister': submission.cash_in_register,
            'difference': submission.difference,
        },
        'submittedBy': str(submission.submitted_by_principal_id),
        'submittedByEmail': submission.submitted_by_email,
        'submittedAt': submission.submitted_at,
        'status': submission.status.value,
        'statusLabel': workflow.STATUS_LABELS[submission.status],
        'reviewedBy': str(submission.reviewed_by_principal_id) if submission.reviewed_by_principal_id else None,
        'reviewedByEmail': submission.reviewed_by_email,
        'reviewedByRole': submission.reviewed_by_role,
        'reviewAction': submission.review_action,
        'reviewNotes': submission.review_notes,
        'reviewedAt': submission.reviewed_at,
        'revisionCount': submission.revision_count,
        'history': [
            {
                'event': event.event,
                'fromStatus': event.from_status,
                'toStatus': event.to_status,
                'actorEmail': event.actor_email,
                'actorRole': event.actor_role,
                'notes': event.notes,
                'createdAt': event.created_at,
            }
            for event in events
        ],
    }


def serialize_submissions(db: Session, submissions: list[Submission]) -> list[dict]:
    ids = [submission.id for submission in submissions]
    products = _lines_by_submission(db, SubmissionProductLine, ids)
    categories = _lines_by_submission(db, SubmissionCategoryLine, ids)
    denominations = _lines_by_submission(db, SubmissionDenominationLine, ids)

    events: dict[int, list] = defaultdict(list)
    if ids:
        for event in db.execute(
            select(SubmissionReviewEvent)
            .where(SubmissionReviewEvent.submission_id.in_(ids))
            .order_by(SubmissionReviewEvent.id.asc())
        ).scalars():
            events[event.submission_id].append(event)

    return [
        _serialize_one(
            submission,
            products=products[submission.id],
            categories=categories[submission.id],
            denominations=denominations[submission.id],
            events=events[submission.id],
        )
        for submission in submissions
    ]


def serialize_submission(db: Session, submission: Submission) -> dict:
    return serialize_submissions(db, [submission])[0]


def serialize_checks(result: ReconciliationResult) -> list[dict]:
    return [
        {
            'category': check.category,
            'cashPortion': check.cash_portion,
            'countedTotal': check.counted_total,
            'gap': check.gap,
            'mismatch': check.mismatch,
        }
        for check in result.banknote_checks
    ]


def mismatch_warnings(result: ReconciliationResult) -> list[str]:
    catalog = get_catalog(result.record_type)
    return [
        (
            f'{catalog.category(check.category).label}: nakit toplam ({check.cash_portion}) '
            f'ile banknot sayımı ({check.counted_total}) uyuşmuyor'
        )
        for check in result.mismatches
    ]

from __future__ import annotations

from datetime import date
from decimal import Decimal

from desk_portal.models import RecordType
from desk_portal.services import denomination_ledger
from desk_portal.services.catalog import get_catalog
from desk_portal.services.reconciliation_math_service import (
    ZERO,
    Payments,
    ReconciliationInput,
    ReconciliationResult,
    category_totals,
    compute_reconciliation,
    to_money,
    to_quantity,
)

PAYMENT_FIELDS = {
    'gunbasiNakit': 'starting_float',
    'bankayaGonderilen': 'bank_deposit_manual',
    'ertesiGuneBirakilan': 'carried_to_next_day',
}


class SubmissionDraft:
    """Editable, unsent record kept by the client.

    Totals and banknote checks are previewed with the same calculators the
    server uses. ``editing_id`` is set when the draft was loaded from a record
    waiting for revision and decides between submit and resubmit.
    """

    def __init__(self, record_type: RecordType | str, business_date: date | None = None) -> None:
        self.catalog = get_catalog(record_type)
        self.record_type = self.catalog.record_type
        self.business_date = business_date or date.today()
        self.editing_id: str | None = None
        self.reset()

    def reset(self) -> None:
        self.editing_id = None
        self.products = {code: Decimal('0') for code in self.catalog.product_codes}
        self.credit_cards = {code: ZERO for code in self.catalog.category_codes}
        self.payments = {name: ZERO for name in PAYMENT_FIELDS}
        self.banknotes = {code: denomination_ledger.empty_counts() for code in self.catalog.counted_category_codes}
        self.bank_sent = {code: ZERO for code in self.catalog.counted_category_codes}

    @classmethod
    def from_record(cls, record: dict) -> SubmissionDraft:
        draft = cls(record['recordType'], date.fromisoformat(record['date'][:10]))
        draft.editing_id = str(record['id'])
        for code, qty in (record.get('products') or {}).items():
            draft.set_quantity(code, qty)
        for code, amount in (record.get('categoryCreditCards') or {}).items():
            draft.credit_cards[code] = to_money(amount, label=code)
        for name, amount in (record.get('payments') or {}).items():
            draft.set_payment(name, amount)
        for category, counts in (record.get('banknotes') or {}).items():
            if category in draft.banknotes:
                draft.banknotes[category] = denomination_ledger.normalize_counts(counts)
        for category, amount in (record.get('bankSentCash') or {}).items():
            if category in draft.bank_sent:
                draft.bank_sent[category] = to_money(amount, label=category)
        return draft

    def gross_by_category(self) -> dict[str, Decimal]:
        return category_totals(self.record_type, self.products)

    def set_quantity(self, product_code: str, value: object) -> None:
        if product_code not in self.products:
            raise ValueError(f'Unknown product: {product_code}')
        self.products[product_code] = to_quantity(value, label=product_code)

    def set_credit_card(self, category_code: str, value: object) -> Decimal:
        """Store a category credit amount, clamped to the category's gross total."""
        if category_code not in self.credit_cards:
            raise ValueError(f'Unknown category: {category_code}')
        amount = min(to_money(value, label=category_code), self.gross_by_category()[category_code])
        self.credit_cards[category_code] = amount
        return amount

    def set_payment(self, name: str, value: object) -> None:
        if name not in self.payments:
            raise ValueError(f'Unknown payment field: {name}')
        self.payments[name] = to_money(value, label=name)

    def set_count(self, category_code: str, denomination_code: str, value: object) -> None:
        if category_code not in self.banknotes:
            raise ValueError(f'Banknote counts not accepted for: {category_code}')
        counts = dict(self.banknotes[category_code])
        counts[denomination_code] = value
        self.banknotes[category_code] = denomination_ledger.normalize_counts(counts)

    def send_to_bank(self, category_code: str) -> Decimal:
        """Mark the currently counted cash of a category as sent to the bank."""
        if category_code not in self.bank_sent:
            raise ValueError(f'Bank-sent amounts not accepted for: {category_code}')
        amount = denomination_ledger.counted_total(self.banknotes[category_code])
        self.bank_sent[category_code] = amount
        return amount

    @property
    def bank_sent_total(self) -> Decimal:
        return sum(self.bank_sent.values(), ZERO)

    def preview(self) -> ReconciliationResult:
        return compute_reconciliation(
            ReconciliationInput(
                record_type=self.record_type,
                products=self.products,
                credit_cards=self.credit_cards,
                payments=Payments(**{PAYMENT_FIELDS[name]: amount for name, amount in self.payments.items()}),
                banknotes=self.banknotes,
            )
        )

    def to_payload(self) -> dict:
        # Decimals go out as strings.
        return {
            'date': self.business_date.isoformat(),
            'products': {code: str(qty) for code, qty in self.products.items()},
            'categoryCreditCards': {code: str(amount) for code, amount in self.credit_cards.items()},
            'payments': {name: str(amount) for name, amount in self.payments.items()},
            'banknotes': {code: dict(counts) for code, counts in self.banknotes.items()},
            'bankSentCash': {code: str(amount) for code, amount in self.bank_sent.items()},
        }

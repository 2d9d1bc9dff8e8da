from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from desk_portal.models import RecordType
from desk_portal.services import denomination_ledger
from desk_portal.services.catalog import RecordCatalog, get_catalog

CENT = denomination_ledger.CENT
QUANTITY_STEP = Decimal('0.001')
ZERO = Decimal('0.00')


def _has_step(value: Decimal, step: Decimal) -> bool:
    try:
        return value == value.quantize(step)
    except InvalidOperation:
        return False


@dataclass(frozen=True)
class Payments:
    starting_float: Decimal = ZERO
    bank_deposit_manual: Decimal = ZERO
    carried_to_next_day: Decimal = ZERO


@dataclass(frozen=True)
class ReconciliationInput:
    record_type: RecordType
    products: Mapping[str, Decimal]
    credit_cards: Mapping[str, Decimal]
    payments: Payments = field(default_factory=Payments)
    banknotes: Mapping[str, Mapping[str, int]] = field(default_factory=dict)


@dataclass(frozen=True)
class CategorySplit:
    category: str
    gross_total: Decimal
    credit_card: Decimal
    cash: Decimal
    # Credit entered beyond the gross total; absorbed by the cash floor.
    overage: Decimal


@dataclass(frozen=True)
class PaymentSplit:
    categories: tuple[CategorySplit, ...]
    total_credit_card: Decimal
    total_cash: Decimal
    credit_overage: Decimal

    def cash_for(self, category: str) -> Decimal:
        for split in self.categories:
            if split.category == category:
                return split.cash
        raise ValueError(f'Unknown category: {category}')


@dataclass(frozen=True)
class RegisterBalance:
    cash_in_register: Decimal
    difference: Decimal

    @property
    def balance_state(self) -> str:
        if self.difference > 0:
            return 'surplus'
        if self.difference < 0:
            return 'shortfall'
        return 'balanced'


@dataclass(frozen=True)
class BanknoteCheck:
    category: str
    cash_portion: Decimal
    counted_total: Decimal

    @property
    def gap(self) -> Decimal:
        return (self.cash_portion - self.counted_total).quantize(CENT)

    @property
    def mismatch(self) -> bool:
        return self.gap != 0


@dataclass(frozen=True)
class ReconciliationResult:
    record_type: RecordType
    gross_by_category: dict[str, Decimal]
    total_sales: Decimal
    split: PaymentSplit
    register: RegisterBalance
    banknote_checks: tuple[BanknoteCheck, ...]

    @property
    def totals(self) -> dict[str, Decimal]:
        return {
            'totalSales': self.total_sales,
            'totalCreditCard': self.split.total_credit_card,
            'totalCash': self.split.total_cash,
            'cashInRegister': self.register.cash_in_register,
            'difference': self.register.difference,
        }

    @property
    def mismatches(self) -> list[BanknoteCheck]:
        return [check for check in self.banknote_checks if check.mismatch]


def to_money(value: object, *, label: str, allow_negative: bool = False) -> Decimal:
    if value is None or value == '':
        return ZERO
    if isinstance(value, bool):
        raise ValueError(f'Invalid amount for {label}')
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f'Invalid amount for {label}') from exc
    if not amount.is_finite():
        raise ValueError(f'Invalid amount for {label}')
    if amount < 0 and not allow_negative:
        raise ValueError(f'Amount cannot be negative for {label}')
    if not _has_step(amount, CENT):
        raise ValueError(f'Amount cannot have more than 2 decimal places for {label}')
    return amount.quantize(CENT)


def to_quantity(value: object, *, label: str) -> Decimal:
    if value is None or value == '':
        return Decimal('0')
    if isinstance(value, bool):
        raise ValueError(f'Invalid quantity for {label}')
    try:
        qty = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f'Invalid quantity for {label}') from exc
    if not qty.is_finite():
        raise ValueError(f'Invalid quantity for {label}')
    if qty < 0:
        raise ValueError(f'Quantity cannot be negative for {label}')
    if not _has_step(qty, QUANTITY_STEP):
        raise ValueError(f'Quantity cannot have more than 3 decimal places for {label}')
    return qty


def normalize_products(catalog: RecordCatalog, raw: Mapping[str, object] | None) -> dict[str, Decimal]:
    raw = raw or {}
    unknown = sorted(set(raw) - set(catalog.product_codes))
    if unknown:
        raise ValueError(f'Unknown products for {catalog.record_type.value}: {", ".join(unknown)}')
    return {product.code: to_quantity(raw.get(product.code), label=product.label) for product in catalog.products}


def normalize_credit_cards(catalog: RecordCatalog, raw: Mapping[str, object] | None) -> dict[str, Decimal]:
    raw = raw or {}
    unknown = sorted(set(raw) - set(catalog.category_codes))
    if unknown:
        raise ValueError(f'Unknown categories for {catalog.record_type.value}: {", ".join(unknown)}')
    return {
        category.code: to_money(raw.get(category.code), label=f'{category.label} kredi kartı')
        for category in catalog.categories
    }


def normalize_banknotes(
    catalog: RecordCatalog, raw: Mapping[str, Mapping[str, object]] | None
) -> dict[str, dict[str, int]]:
    raw = raw or {}
    counted = catalog.counted_category_codes
    unknown = sorted(set(raw) - set(counted))
    if unknown:
        raise ValueError(f'Banknote counts not accepted for: {", ".join(unknown)}')
    return {code: denomination_ledger.normalize_counts(raw.get(code)) for code in counted}


def category_totals(record_type: RecordType, products: Mapping[str, Decimal]) -> dict[str, Decimal]:
    catalog = get_catalog(record_type)
    totals: dict[str, Decimal] = {}
    for category in catalog.categories:
        gross = sum(
            (product.unit_price * Decimal(products.get(product.code, 0)) for product in catalog.products_in(category.code)),
            ZERO,
        )
        totals[category.code] = gross.quantize(CENT)
    return totals


def total_sales(gross_by_category: Mapping[str, Decimal]) -> Decimal:
    return sum(gross_by_category.values(), ZERO).quantize(CENT)


def resolve_payment_split(
    gross_by_category: Mapping[str, Decimal],
    credit_by_category: Mapping[str, Decimal],
) -> PaymentSplit:
    splits = []
    for category, gross in gross_by_category.items():
        credit = credit_by_category.get(category, ZERO)
        # The cash floor applies even when an upstream clamp was bypassed.
        cash = max(ZERO, gross - credit).quantize(CENT)
        overage = max(ZERO, credit - gross).quantize(CENT)
        splits.append(CategorySplit(category=category, gross_total=gross, credit_card=credit, cash=cash, overage=overage))

    return PaymentSplit(
        categories=tuple(splits),
        total_credit_card=sum((split.credit_card for split in splits), ZERO).quantize(CENT),
        total_cash=sum((split.cash for split in splits), ZERO).quantize(CENT),
        credit_overage=sum((split.overage for split in splits), ZERO).quantize(CENT),
    )


def reconcile_register(total_sales_amount: Decimal, total_credit_card: Decimal, payments: Payments) -> RegisterBalance:
    outflows = total_credit_card + payments.bank_deposit_manual + payments.carried_to_next_day
    cash_in_register = payments.starting_float + total_sales_amount - outflows
    # Literal balance check: the starting float is subtracted alongside the outflows.
    difference = total_sales_amount - (payments.starting_float + outflows)
    return RegisterBalance(cash_in_register=cash_in_register.quantize(CENT), difference=difference.quantize(CENT))


def cross_check_banknotes(
    split: PaymentSplit,
    banknotes: Mapping[str, Mapping[str, int]],
    categories: list[str],
) -> tuple[BanknoteCheck, ...]:
    return tuple(
        BanknoteCheck(
            category=category,
            cash_portion=split.cash_for(category),
            counted_total=denomination_ledger.counted_total(banknotes.get(category)),
        )
        for category in categories
    )


def compute_reconciliation(data: ReconciliationInput) -> ReconciliationResult:
    catalog = get_catalog(data.record_type)
    gross = category_totals(data.record_type, data.products)
    sales = total_sales(gross)
    split = resolve_payment_split(gross, data.credit_cards)
    register = reconcile_register(sales, split.total_credit_card, data.payments)
    checks = cross_check_banknotes(split, data.banknotes, catalog.counted_category_codes)
    return ReconciliationResult(
        record_type=data.record_type,
        gross_by_category=gross,
        total_sales=sales,
        split=split,
        register=register,
        banknote_checks=checks,
    )

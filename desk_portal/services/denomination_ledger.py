from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal

CENT = Decimal('0.01')

DENOMINATIONS: list[dict] = [
    {'code': 'b200', 'label': '200 TL', 'unit_value': Decimal('200.00'), 'position': 1},
    {'code': 'b100', 'label': '100 TL', 'unit_value': Decimal('100.00'), 'position': 2},
    {'code': 'b50', 'label': '50 TL', 'unit_value': Decimal('50.00'), 'position': 3},
    {'code': 'b20', 'label': '20 TL', 'unit_value': Decimal('20.00'), 'position': 4},
    {'code': 'b10', 'label': '10 TL', 'unit_value': Decimal('10.00'), 'position': 5},
    {'code': 'b5', 'label': '5 TL', 'unit_value': Decimal('5.00'), 'position': 6},
    {'code': 'c1', 'label': '1 TL', 'unit_value': Decimal('1.00'), 'position': 7},
    {'code': 'c050', 'label': '50 Kuruş', 'unit_value': Decimal('0.50'), 'position': 8},
]

DENOM_BY_CODE = {item['code']: item for item in DENOMINATIONS}
DENOM_CODES = [item['code'] for item in DENOMINATIONS]


def empty_counts() -> dict[str, int]:
    return {code: 0 for code in DENOM_CODES}


def normalize_counts(counts: Mapping[str, object] | None) -> dict[str, int]:
    """Validate a raw count vector and return one with every face value present.

    Missing codes count as zero. Unknown codes, negative counts and
    non-integer counts raise ``ValueError``.
    """
    normalized = empty_counts()
    if not counts:
        return normalized

    for code, raw in counts.items():
        meta = DENOM_BY_CODE.get(code)
        if meta is None:
            raise ValueError(f'Unknown denomination: {code}')
        if raw is None or raw == '':
            continue
        if isinstance(raw, bool):
            raise ValueError(f'Count must be a whole number for {meta["label"]}')
        if isinstance(raw, int):
            qty = raw
        else:
            try:
                as_decimal = Decimal(str(raw).strip())
            except ArithmeticError as exc:
                raise ValueError(f'Count must be a whole number for {meta["label"]}') from exc
            if not as_decimal.is_finite() or as_decimal != as_decimal.to_integral_value():
                raise ValueError(f'Count must be a whole number for {meta["label"]}')
            qty = int(as_decimal)
        if qty < 0:
            raise ValueError(f'Count cannot be negative for {meta["label"]}')
        normalized[code] = qty
    return normalized


def line_amount(code: str, quantity: int) -> Decimal:
    return (DENOM_BY_CODE[code]['unit_value'] * Decimal(quantity)).quantize(CENT)


def counted_total(counts: Mapping[str, object] | None) -> Decimal:
    clean = normalize_counts(counts)
    total = sum((line_amount(code, qty) for code, qty in clean.items()), Decimal('0.00'))
    return total.quantize(CENT)


def count_lines(counts: Mapping[str, object] | None) -> list[dict]:
    clean = normalize_counts(counts)
    return [
        {
            'denomination_code': item['code'],
            'denomination_label': item['label'],
            'position': item['position'],
            'unit_value': item['unit_value'],
            'quantity': clean[item['code']],
            'line_amount': line_amount(item['code'], clean[item['code']]),
        }
        for item in DENOMINATIONS
    ]


def has_counts(counts: Mapping[str, int] | None) -> bool:
    return bool(counts) and any(qty > 0 for qty in counts.values())

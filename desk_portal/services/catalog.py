from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from desk_portal.models import RecordType


@dataclass(frozen=True)
class ProductSpec:
    code: str
    label: str
    unit_price: Decimal
    category: str


@dataclass(frozen=True)
class CategorySpec:
    code: str
    label: str
    # Categories with a physical banknote count can also be marked as sent to bank.
    counted: bool


@dataclass(frozen=True)
class RecordCatalog:
    record_type: RecordType
    label: str
    export_label: str
    products: tuple[ProductSpec, ...]
    categories: tuple[CategorySpec, ...]

    @property
    def product_codes(self) -> list[str]:
        return [product.code for product in self.products]

    @property
    def category_codes(self) -> list[str]:
        return [category.code for category in self.categories]

    @property
    def counted_category_codes(self) -> list[str]:
        return [category.code for category in self.categories if category.counted]

    def products_in(self, category_code: str) -> list[ProductSpec]:
        return [product for product in self.products if product.category == category_code]

    def category(self, code: str) -> CategorySpec:
        for category in self.categories:
            if category.code == code:
                return category
        raise ValueError(f'Unknown category: {code}')


DESK_CATALOG = RecordCatalog(
    record_type=RecordType.DESK,
    label='Desk İşlemleri',
    export_label='Desk',
    products=(
        ProductSpec('dolum', 'Dolum', Decimal('1'), 'dolum'),
        ProductSpec('tamKart', 'Tam Kart', Decimal('50'), 'kart'),
        ProductSpec('indirimliKart', 'İndirimli Kart', Decimal('100'), 'kart'),
        ProductSpec('serbestKart', 'Serbest Kart', Decimal('100'), 'kart'),
        ProductSpec('serbestVize', 'Serbest Vize', Decimal('75'), 'vize'),
        ProductSpec('indirimliVize', 'İndirimli Vize', Decimal('25'), 'vize'),
        ProductSpec('kartKilifi', 'Kart Kılıfı', Decimal('10'), 'kartKilifi'),
    ),
    categories=(
        CategorySpec('dolum', 'DOLUM', counted=True),
        CategorySpec('kart', 'KART', counted=True),
        CategorySpec('vize', 'VİZE', counted=True),
        CategorySpec('kartKilifi', 'KART KILIFI', counted=False),
    ),
)

BAYI_DOLUM_CATALOG = RecordCatalog(
    record_type=RecordType.BAYI_DOLUM,
    label='Bayi Dolum',
    export_label='BayiDolum',
    products=(
        ProductSpec('bayiDolum', 'Bayi Dolum', Decimal('1'), 'dolum'),
        ProductSpec('bayiTamKart', 'Bayi Tam Kart', Decimal('50'), 'kart'),
        ProductSpec('bayiKartKilifi', 'Bayi Kart Kılıfı', Decimal('20'), 'kart'),
        ProductSpec('posRulosu', 'POS Rulosu', Decimal('10'), 'kart'),
    ),
    categories=(
        CategorySpec('dolum', 'DOLUM', counted=True),
        CategorySpec('kart', 'KART', counted=True),
    ),
)

CATALOGS: dict[RecordType, RecordCatalog] = {
    RecordType.DESK: DESK_CATALOG,
    RecordType.BAYI_DOLUM: BAYI_DOLUM_CATALOG,
}

# Union of bank-sent categories across record types, in report order.
REMITTANCE_CATEGORY_CODES = ['dolum', 'kart', 'vize']


def get_catalog(record_type: RecordType | str) -> RecordCatalog:
    try:
        return CATALOGS[RecordType(record_type)]
    except ValueError as exc:
        raise ValueError(f'Unknown record type: {record_type}') from exc

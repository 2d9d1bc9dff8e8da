"""Bank deposit slip ("pusula") spreadsheets.

Rows are built as plain lists first so the layout can be checked without
opening a workbook; ``render_workbook`` turns them into a one-sheet xlsx.
"""
from __future__ import annotations

import io
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from openpyxl import Workbook
from openpyxl.styles import Font
from sqlalchemy.orm import Session

from desk_portal.models import RecordType, Submission
from desk_portal.services import denomination_ledger
from desk_portal.services.catalog import get_catalog
from desk_portal.services.submission_service import load_submission_input

ZERO = Decimal('0.00')
SHEET_TITLE = 'Pusula'
XLSX_MEDIA_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
SEPARATOR = '═' * 40
COLUMN_HEADERS = ['Kupür', 'Adet', 'Birim Değer (TL)', 'Toplam (TL)']
SINGLE_COLUMN_WIDTHS = (30, 10, 18, 18)
BULK_COLUMN_WIDTHS = (45, 10, 18, 18)
EMPTY_COUNT_ROW = ['(Kupür verisi yok)', '', '', '']


@dataclass(frozen=True)
class PusulaRecord:
    record_type: RecordType
    business_date: date
    submitted_by_email: str
    banknotes: Mapping[str, Mapping[str, int]]
    bank_sent: Mapping[str, Decimal]


def pusula_record_for(db: Session, submission: Submission) -> PusulaRecord:
    data = load_submission_input(db, submission)
    return PusulaRecord(
        record_type=submission.record_type,
        business_date=submission.business_date,
        submitted_by_email=submission.submitted_by_email,
        banknotes=data.banknotes,
        bank_sent=data.bank_sent,
    )


def _tr_date(value: date) -> str:
    return value.strftime('%d.%m.%Y')


def _category_block(record: PusulaRecord, category_code: str, *, spacer_before_totals: bool) -> tuple[list[list], Decimal]:
    category = get_catalog(record.record_type).category(category_code)
    counts = denomination_ledger.normalize_counts(record.banknotes.get(category_code))
    bank_sent = Decimal(record.bank_sent.get(category_code, ZERO))

    rows: list[list] = [[f'--- {category.label} ---'], list(COLUMN_HEADERS)]
    for line in denomination_ledger.count_lines(counts):
        if line['quantity'] > 0:
            rows.append([line['denomination_label'], line['quantity'], line['unit_value'], line['line_amount']])
    if not denomination_ledger.has_counts(counts):
        rows.append(list(EMPTY_COUNT_ROW))
    if spacer_before_totals:
        rows.append([])
    rows.append([f'{category.label} Kupür Toplamı:', '', '', denomination_ledger.counted_total(counts)])
    rows.append([f'{category.label} Bankaya Gönderilen:', '', '', bank_sent])
    rows.append([])
    return rows, bank_sent


def build_pusula_rows(record: PusulaRecord) -> list[list]:
    catalog = get_catalog(record.record_type)
    rows: list[list] = [
        ['BANKA PUSULA RAPORU'],
        [],
        ['Tarih:', _tr_date(record.business_date)],
        ['Tip:', catalog.label],
        ['Gönderen:', record.submitted_by_email],
        [],
    ]
    grand_total = ZERO
    for code in catalog.counted_category_codes:
        block, bank_sent = _category_block(record, code, spacer_before_totals=True)
        rows.extend(block)
        # The slip total follows the amounts sent, not the denomination subtotals.
        grand_total += bank_sent
    rows.append(['=== GENEL TOPLAM ===', '', '', grand_total])
    return rows


def build_bulk_pusula_rows(records: Sequence[PusulaRecord], *, created_on: date) -> list[list]:
    if not records:
        raise ValueError('No records to export')

    rows: list[list] = [
        ['BANKA PUSULA RAPORU - TOPLU'],
        [],
        ['Oluşturma Tarihi:', _tr_date(created_on)],
        ['Toplam Kayıt:', len(records)],
        [],
    ]
    totals = {'dolum': ZERO, 'kart': ZERO, 'vize': ZERO}
    for index, record in enumerate(records, start=1):
        catalog = get_catalog(record.record_type)
        rows.append([SEPARATOR])
        rows.append([f'KAYIT {index}: {_tr_date(record.business_date)} - {catalog.label} - {record.submitted_by_email}'])
        rows.append([])

        record_total = ZERO
        for code in catalog.counted_category_codes:
            block, bank_sent = _category_block(record, code, spacer_before_totals=False)
            rows.extend(block)
            totals[code] = totals.get(code, ZERO) + bank_sent
            record_total += bank_sent
        rows.append([f'KAYIT {index} TOPLAMI:', '', '', record_total])
        rows.append([])

    rows.append([SEPARATOR])
    rows.append([])
    rows.append(['=== GENEL TOPLAM ==='])
    rows.append(['Toplam Dolum:', '', '', totals['dolum']])
    rows.append(['Toplam Kart:', '', '', totals['kart']])
    if totals['vize'] > 0:
        rows.append(['Toplam Vize:', '', '', totals['vize']])
    rows.append(['GENEL TOPLAM:', '', '', sum(totals.values(), ZERO)])
    return rows


def render_workbook(rows: Sequence[Sequence], column_widths: Sequence[int]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE
    for row in rows:
        ws.append(list(row))
    ws.cell(row=1, column=1).font = Font(bold=True, size=14)
    for index, width in enumerate(column_widths):
        ws.column_dimensions[chr(ord('A') + index)].width = width

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def pusula_filename(record: PusulaRecord) -> str:
    catalog = get_catalog(record.record_type)
    return f'Pusula_{catalog.export_label}_{record.business_date.strftime("%Y%m%d")}.xlsx'


def bulk_pusula_filename(created_on: date) -> str:
    return f'Pusula_Toplu_{created_on.strftime("%Y%m%d")}.xlsx'


def export_pusula(record: PusulaRecord) -> tuple[str, bytes]:
    return pusula_filename(record), render_workbook(build_pusula_rows(record), SINGLE_COLUMN_WIDTHS)


def export_bulk_pusula(records: Sequence[PusulaRecord], *, created_on: date) -> tuple[str, bytes]:
    rows = build_bulk_pusula_rows(records, created_on=created_on)
    return bulk_pusula_filename(created_on), render_workbook(rows, BULK_COLUMN_WIDTHS)

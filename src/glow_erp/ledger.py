"""Read-side ledger combining manual sales with paid point-of-sale orders.

Nothing here writes to the key-value store. The ledger is recomputed from
its two sources on every read and may be rendered as display rows or
exported to an Excel report.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple, Union

import openpyxl
from openpyxl.styles import Font

from . import core_logic, data_manager, log
from .constants import CURRENCY_SYMBOL, NOT_AVAILABLE, OrderStatus, SourceType

LedgerRecord = Union[data_manager.Sale, data_manager.Order]
LineRecord = Union[data_manager.SaleItem, data_manager.OrderItem]

# Manual sales precede POS orders on the same day.
_SOURCE_RANK: Mapping[SourceType, int] = {
    SourceType.MANUAL: 0,
    SourceType.POS: 1,
}

LEDGER_COLUMNS: Sequence[str] = (
    "ID",
    "Cliente",
    "Vendedor/Cajero",
    "Fecha",
    "Origen",
    "Total",
)

LINE_COLUMNS: Sequence[str] = (
    "ID",
    "Producto",
    "Categoría",
    "Cantidad",
    "Precio Unit.",
    "Subtotal",
)


@dataclass(frozen=True)
class LedgerEntry:
    """A manual sale or a paid order, tagged by ``source_type``."""

    source_type: SourceType
    record: LedgerRecord

    @property
    def id(self) -> str:
        return self.record.id

    @property
    def date(self) -> str:
        return self.record.date

    @property
    def total(self) -> Decimal:
        return self.record.total

    @property
    def items(self) -> Tuple[LineRecord, ...]:
        return self.record.items


@dataclass(frozen=True)
class LedgerLine:
    """Display view of one line item, with its category resolved."""

    product_id: str
    product_name: str
    category: str
    quantity: int
    price: Decimal
    subtotal: Decimal


@dataclass(frozen=True)
class LedgerRow:
    """Display view of one ledger entry with names resolved."""

    id: str
    short_id: str
    customer: str
    staff: str
    date: str
    source_type: SourceType
    total: Decimal
    lines: Tuple[LedgerLine, ...]

    @property
    def total_display(self) -> str:
        return format_money(self.total)


@dataclass(frozen=True)
class LedgerSummary:
    """Entry counts and revenue per source."""

    entries: int
    manual_total: Decimal
    pos_total: Decimal

    @property
    def total(self) -> Decimal:
        return self.manual_total + self.pos_total


def parse_ledger_date(raw: str) -> date:
    """Parse a ``YYYY-MM-DD`` date; unreadable values sort as the oldest day."""

    try:
        return date.fromisoformat(raw[:10])
    except (TypeError, ValueError):
        log.warning("Unreadable ledger date %r; sorting it last", raw)
        return date.min


def merge_ledger(
    manual_sales: Iterable[data_manager.Sale],
    orders: Iterable[data_manager.Order],
) -> List[LedgerEntry]:
    """Combine manual sales and paid orders, newest first.

    Orders whose status is not ``Pagado`` are dropped. Entries are ordered by
    date descending; on the same date manual sales come before POS orders,
    and within one source higher (later) ids come first. The result depends
    only on the inputs' contents, never on their order, and the inputs are
    left untouched.
    """

    entries = [LedgerEntry(SourceType.MANUAL, sale) for sale in manual_sales]
    entries.extend(
        LedgerEntry(SourceType.POS, order)
        for order in orders
        if order.status == OrderStatus.PAID.value
    )

    # Stable sorts applied from the least to the most significant key.
    entries.sort(key=lambda entry: entry.id, reverse=True)
    entries.sort(key=lambda entry: _SOURCE_RANK[entry.source_type])
    entries.sort(key=lambda entry: parse_ledger_date(entry.date), reverse=True)
    log.debug("Merged ledger with %d entries", len(entries))
    return entries


def load_ledger(context: core_logic.RuntimeContext) -> List[LedgerEntry]:
    """Merge the persisted sales with the current orders."""

    return merge_ledger(context.sales.list(), context.orders.list())


def resolve_category(item: LineRecord, catalog: core_logic.Catalog) -> str:
    """Return the item's snapshot category, or the catalog's, or ``"N/A"``."""

    if item.category:
        return item.category
    return catalog.category_of(item.product_id)


def format_money(amount: Decimal) -> str:
    return f"{CURRENCY_SYMBOL}{amount.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)}"


def short_id(record_id: str) -> str:
    """Return the part after the family prefix (``sale-123`` -> ``123``)."""

    parts = record_id.split("-")
    return parts[1] if len(parts) > 1 and parts[1] else record_id


def describe_entry(
    entry: LedgerEntry,
    catalog: core_logic.Catalog,
    directory: core_logic.Directory,
) -> LedgerRow:
    """Resolve names and categories for one entry."""

    record = entry.record
    if entry.source_type is SourceType.MANUAL:
        customer = directory.customer_name(record.customer_id)
        staff = f"{directory.seller_name(record.seller_id)} / {directory.cashier_name(record.cashier_id)}"
    else:
        customer = record.customer_name
        staff = record.seller_name or NOT_AVAILABLE

    lines = tuple(
        LedgerLine(
            product_id=item.product_id,
            product_name=item.product_name,
            category=resolve_category(item, catalog),
            quantity=item.quantity,
            price=item.price,
            subtotal=item.subtotal,
        )
        for item in entry.items
    )
    return LedgerRow(
        id=entry.id,
        short_id=short_id(entry.id),
        customer=customer,
        staff=staff,
        date=entry.date,
        source_type=entry.source_type,
        total=entry.total,
        lines=lines,
    )


def describe_ledger(
    entries: Iterable[LedgerEntry],
    catalog: core_logic.Catalog,
    directory: core_logic.Directory,
) -> List[LedgerRow]:
    return [describe_entry(entry, catalog, directory) for entry in entries]


def summarize_ledger(entries: Iterable[LedgerEntry]) -> LedgerSummary:
    """Count entries and add up revenue per source."""

    totals: Dict[SourceType, Decimal] = {source: Decimal("0") for source in SourceType}
    count = 0
    for entry in entries:
        totals[entry.source_type] += entry.total
        count += 1
    return LedgerSummary(
        entries=count,
        manual_total=totals[SourceType.MANUAL],
        pos_total=totals[SourceType.POS],
    )


def export_ledger_workbook(rows: Sequence[LedgerRow], destination: Path) -> Path:
    """Write ``rows`` to an Excel report at ``destination``.

    The workbook has a ``Ledger`` sheet with one row per entry and a
    ``LedgerLines`` sheet with one row per line item, both with bold
    headers. Parent directories are created on demand and an existing file
    is replaced.

    Returns:
        Path: The resolved destination.
    """

    destination = Path(destination).expanduser().resolve()
    destination.parent.mkdir(parents=True, exist_ok=True)

    workbook = openpyxl.Workbook()
    if workbook.active and workbook.active.title == "Sheet":
        workbook.remove(workbook.active)

    bold_font = Font(bold=True)
    ledger_sheet = _create_sheet(workbook, "Ledger", LEDGER_COLUMNS, bold_font)
    lines_sheet = _create_sheet(workbook, "LedgerLines", LINE_COLUMNS, bold_font)

    for row in rows:
        ledger_sheet.append(
            [row.id, row.customer, row.staff, row.date, row.source_type.value, row.total])
        for line in row.lines:
            lines_sheet.append(
                [row.id, line.product_name, line.category, line.quantity, line.price, line.subtotal])

    workbook.save(destination)
    log.info("Exported %d ledger entries to '%s'", len(rows), destination)
    return destination


def _create_sheet(workbook, title: str, columns: Sequence[str], font: Font):
    worksheet = workbook.create_sheet(title=title)
    for column_index, column_name in enumerate(columns, start=1):
        cell = worksheet.cell(row=1, column=column_index)
        cell.value = column_name
        cell.font = font
    return worksheet

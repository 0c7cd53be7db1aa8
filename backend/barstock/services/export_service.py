# Overview: CSV export of current stock, formatted for spreadsheet import.

from __future__ import annotations

import csv
import io
import math
from typing import Any, Iterable

from ..validation import ValidationError

BOM = "\ufeff"
SEPARATOR = ";"
MISSING_ORDER_INDEX = 999

HEADERS = ("Name", "Volume", "Bar 1", "Bar 2", "Cold room", "Total")
DEFAULT_VOLUME = "l"

EXPORT_FILTERS = ("frozen", "active")


def format_number(value: Any) -> str:
    """
    Round to 2 decimals. Whole numbers are written plain; fractional values are
    wrapped as ="x.y" so spreadsheets keep the decimal point.
    """
    if value is None or value == "" or isinstance(value, bool):
        return "0"
    try:
        number = float(value)
    except (TypeError, ValueError):
        return "0"
    if not math.isfinite(number):
        return "0"
    rounded = round(number, 2)
    if rounded == int(rounded):
        return str(int(rounded))
    return f'="{rounded}"'


def _csv_cells(values: Iterable[Any]) -> str:
    """Render text cells with csv quoting, without the line terminator."""
    buf = io.StringIO()
    csv.writer(buf, delimiter=SEPARATOR, lineterminator="\n").writerow(values)
    return buf.getvalue()[:-1]


def _order(value: Any) -> int:
    # 0 and None both sort as missing
    return value or MISSING_ORDER_INDEX


def sort_for_export(products: Iterable[dict], categories: Iterable[dict]) -> list[dict]:
    """Category order first, then product order within the category."""
    category_order = {c["id"]: _order(c.get("order_index")) for c in categories}
    return sorted(
        products,
        key=lambda p: (
            category_order.get(p.get("category_id"), MISSING_ORDER_INDEX),
            _order(p.get("order_index")),
        ),
    )


def export_products_csv(
    products: Iterable[dict],
    categories: Iterable[dict],
    only: str | None = None,
) -> str:
    """Return the CSV document (BOM included) as text."""
    if only is not None and only not in EXPORT_FILTERS:
        raise ValidationError(f"only must be one of: {', '.join(EXPORT_FILTERS)}")

    rows = list(products)
    if only == "frozen":
        rows = [p for p in rows if p.get("is_frozen") is True]
    elif only == "active":
        rows = [p for p in rows if p.get("is_frozen") is not True]

    lines = [_csv_cells(HEADERS)]
    for product in sort_for_export(rows, categories):
        counts = [product.get(c) or 0 for c in ("bar1", "bar2", "cold_room")]
        # Number cells stay unquoted so ="x.y" is read as a formula
        numbers = [format_number(v) for v in counts] + [format_number(sum(counts))]
        text = _csv_cells([product.get("name"), product.get("volume") or DEFAULT_VOLUME])
        lines.append(SEPARATOR.join([text, *numbers]))
    return BOM + "\n".join(lines)

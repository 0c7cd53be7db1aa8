# Overview: Service-layer helpers that turn the order summary into per-distributor order messages.

from __future__ import annotations

from datetime import date
from typing import Iterable
from urllib.parse import quote

from ..time_utils import format_order_date, utcnow
from ..validation import ValidationError
from .par_level_service import STATUS_ORDER

NO_DISTRIBUTOR = "No distributor"
DEFAULT_UNIT = "pcs"
DEFAULT_VENUE = "Bar"

DEFAULT_TEMPLATE = {
    "greeting": "Good afternoon! Order from {{venue}}",
    "date_line": "Date: {{date}}",
    "item_line": "• {{name}} {{volume}} — {{qty}} {{unit}}",
    "footer": "Total items: {{total}}",
}


def group_orders_by_distributor(summary: Iterable[dict]) -> list[dict]:
    """
    Group "order" rows by distributor.

    Returns [{"distributor_id", "name", "whatsapp", "items"}] sorted by name.
    Rows without a linked distributor share one group labelled by the free-text
    distributor or NO_DISTRIBUTOR.
    """
    groups: dict = {}
    for row in summary:
        if row.get("status") != STATUS_ORDER:
            continue
        key = row.get("distributor_id")
        if key not in groups:
            groups[key] = {
                "distributor_id": key,
                "name": row.get("distributor_name") or row.get("distributor_text") or NO_DISTRIBUTOR,
                "whatsapp": row.get("distributor_whatsapp"),
                "items": [],
            }
        groups[key]["items"].append(row)
    return sorted(groups.values(), key=lambda g: g["name"].lower())


def _fill(line: str, values: dict) -> str:
    for key, value in values.items():
        line = line.replace("{{" + key + "}}", str(value))
    return line


def build_order_text(
    items: list[dict],
    template: dict | None = None,
    venue: str | None = None,
    on_date: date | None = None,
) -> str:
    """Render an order message: greeting, date, blank line, items, blank line, footer."""
    tpl = dict(DEFAULT_TEMPLATE)
    if template:
        unknown = set(template) - set(DEFAULT_TEMPLATE)
        if unknown:
            raise ValidationError(f"Unknown template fields: {', '.join(sorted(unknown))}")
        tpl.update({k: v for k, v in template.items() if v is not None})

    on_date = on_date or utcnow().date()
    lines = [
        _fill(tpl["greeting"], {"venue": venue or DEFAULT_VENUE}),
        _fill(tpl["date_line"], {"date": format_order_date(on_date)}),
        "",
    ]
    for item in items:
        line = _fill(tpl["item_line"], {
            "name": item.get("name") or "",
            "volume": item.get("volume") or "",
            "qty": item.get("order_qty", ""),
            "unit": item.get("unit") or DEFAULT_UNIT,
        })
        # Collapse the gap left by an empty volume
        lines.append(line.replace("  ", " "))
    lines.append("")
    lines.append(_fill(tpl["footer"], {"total": len(items)}))
    return "\n".join(lines)


def build_whatsapp_link(phone: str, text: str) -> str:
    if not phone:
        raise ValidationError("Distributor has no WhatsApp number")
    return f"https://wa.me/{phone}?text={quote(text, safe='')}"


def build_order_messages(
    summary: Iterable[dict],
    *,
    template: dict | None = None,
    venue: str | None = None,
    on_date: date | None = None,
) -> list[dict]:
    """One message per distributor group, with a wa.me link where a number is known."""
    messages = []
    for group in group_orders_by_distributor(summary):
        text = build_order_text(group["items"], template=template, venue=venue, on_date=on_date)
        messages.append({
            "distributor_id": group["distributor_id"],
            "name": group["name"],
            "whatsapp": group["whatsapp"],
            "items_count": len(group["items"]),
            "text": text,
            "link": build_whatsapp_link(group["whatsapp"], text) if group["whatsapp"] else None,
        })
    return messages

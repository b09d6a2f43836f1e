"""Realize Reporter — Markdown Report Renderer.

Renders a ProjectedTable as the Markdown summary shown to operators: a
heading, the conversion rule in use, the top rows, an active-entity count,
totals and a deep link into the Realize GUI.
"""

from typing import Any, List, Optional
from urllib.parse import quote

from realize.config import settings
from realize.analyzer.projector import Column, ProjectedRow, ProjectedTable
from realize.core.breakdowns import Breakdown
from realize.connectors.backstage.transformer import is_number

MISSING = "–"
TOP_ROWS = 10
CPA_MARKERS = {"good": "🟢", "bad": "🔴"}

CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "ILS": "₪",
    "JPY": "¥",
    "INR": "₹",
    "KRW": "₩",
    "BRL": "R$",
    "CAD": "CA$",
    "AUD": "A$",
    "MXN": "MX$",
}


# ── Formatting ──


def safe(value: Any) -> str:
    """Render a cell value; missing becomes "–" and pipes are escaped."""
    text = MISSING if value is None or value == "" else str(value)
    return text.replace("|", "\\|")


def format_currency(value: Optional[float], currency: Optional[str] = None) -> str:
    """Whole-unit currency amount, e.g. ``$1,235`` or ``-€40``."""
    if not is_number(value):
        return MISSING
    code = (currency or settings.default_currency).upper()
    symbol = CURRENCY_SYMBOLS.get(code, f"{code} ")
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.0f}"


def format_count(value: Optional[float]) -> str:
    return f"{value:,.0f}" if is_number(value) else MISSING


def format_percent(value: Optional[float]) -> str:
    return f"{value * 100:.2f}%" if is_number(value) else MISSING


def format_cell(column: Column, row: ProjectedRow, currency: Optional[str]) -> str:
    value = row.values.get(column.key)
    if column.kind == "currency":
        text = format_currency(value, currency)
    elif column.kind == "count":
        text = format_count(value)
    elif column.kind == "percent":
        text = format_percent(value)
    else:
        return safe(value)
    if column.key == "cpa" and row.cpa_flag and text != MISSING:
        text = f"**{text}** {CPA_MARKERS[row.cpa_flag]}"
    return text


# ── GUI Link ──


def build_gui_link(
    account_numeric_id: Any,
    breakdown: Breakdown,
    start_date: str,
    end_date: str,
    conversion_rule_name: Optional[str] = None,
) -> str:
    """Deep link to the same report in the Realize web UI."""
    if is_number(account_numeric_id) and float(account_numeric_id).is_integer():
        account_numeric_id = int(account_numeric_id)
    link = (
        f"{settings.realize_gui_url.rstrip('/')}/campaigns"
        f"?accountId={account_numeric_id}&reportId={breakdown.link_id}"
        f"&startDate={start_date}&endDate={end_date}"
    )
    if conversion_rule_name:
        link += f"&conversionRuleName={quote(conversion_rule_name, safe='')}"
    return link


# ── Markdown ──


def _table(table: ProjectedTable, currency: Optional[str]) -> List[str]:
    headers = [safe(c.header) for c in table.columns]
    separators = []
    for column, header in zip(table.columns, headers):
        dashes = "-" * max(3, len(header))
        separators.append(dashes if column.kind == "text" else dashes + ":")
    lines = [f"| {' | '.join(headers)} |", f"| {' | '.join(separators)} |"]
    for row in table.rows[:TOP_ROWS]:
        cells = [format_cell(c, row, currency) for c in table.columns]
        lines.append(f"| {' | '.join(cells)} |")
    return lines


def build_markdown(
    account_name: str,
    account_numeric_id: Any,
    table: ProjectedTable,
    start_date: str,
    end_date: str,
    currency: Optional[str] = None,
    conversion_rule_name: Optional[str] = None,
    cpa_goal: Optional[float] = None,
    warnings: Optional[List[str]] = None,
    notes: Optional[List[str]] = None,
) -> tuple[str, str]:
    """Render the report; returns ``(markdown, gui_link)``."""
    breakdown = table.breakdown
    lines = [f"## {breakdown.pretty} Report for {account_name}", ""]

    if conversion_rule_name:
        lines.append(f"**Using Conversion Rule:** {safe(conversion_rule_name)}")
        if is_number(cpa_goal):
            lines.append(f"**CPA Goal:** {format_currency(cpa_goal, currency)}")
        if table.conversion_caption and table.cpa_caption:
            lines.append(
                f'*(Metrics: "{table.conversion_caption}" & "{table.cpa_caption}")*'
            )
        elif table.conversion_caption:
            lines.append(f'*(Metric: "{table.conversion_caption}")*')
        lines.append("")

    for warning in warnings or []:
        lines.append(f"> {warning}")
    if warnings:
        lines.append("")

    lines.extend(_table(table, currency))

    totals = table.totals
    if totals.active_count is not None:
        label = breakdown.pretty.lower()
        lines.append(f"Total active {label} (w/ spend > $0): {format_count(totals.active_count)}")

    for note in notes or []:
        lines.append(f"*{note}*")

    total_line = f"**Totals:** Spent: {format_currency(totals.spent, currency)}"
    if conversion_rule_name and totals.conversions is not None:
        caption = table.conversion_caption or "Conversions"
        total_line += f", {caption}: {format_count(totals.conversions)}"
    lines.extend(["", total_line, ""])

    gui_link = build_gui_link(
        account_numeric_id, breakdown, start_date, end_date, conversion_rule_name
    )
    lines.append(f"[See more in Realize ↗]({gui_link})")
    return "\n".join(lines), gui_link

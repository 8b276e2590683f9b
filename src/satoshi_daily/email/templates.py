"""
Email templates for Satoshi Daily.

All templates use inline CSS for maximum email client compatibility.
Dark theme with Bitcoin orange (#F7931A) accents.

Each template function returns (subject, html_body, text_body).
"""

from __future__ import annotations

from html import escape
from typing import TYPE_CHECKING

from satoshi_daily.game.formatting import format_usd

if TYPE_CHECKING:
    from satoshi_daily.settlement.notifier import DaySummary

# Color constants
BG_DARK = "#06080C"
BG_CARD = "#0D1117"
ORANGE = "#F7931A"
GREEN = "#3FB950"
TEXT_PRIMARY = "#F0F6FC"
TEXT_SECONDARY = "#8B949E"
BORDER = "#21262D"


def _base_layout(content: str, app_name: str = "Satoshi Daily") -> str:
    """Wrap content in the base email layout."""
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{app_name}</title>
</head>
<body style="margin: 0; padding: 0; background-color: {BG_DARK}; font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;">
    <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%" style="background-color: {BG_DARK};">
        <tr>
            <td align="center" style="padding: 32px 16px;">
                <table role="presentation" cellspacing="0" cellpadding="0" border="0" width="640" style="max-width: 640px; width: 100%;">
                    <tr>
                        <td align="center" style="padding-bottom: 24px;">
                            <span style="font-size: 26px; font-weight: 700; color: {ORANGE};">&#x20BF;</span>
                            <span style="font-size: 20px; font-weight: 700; color: {TEXT_PRIMARY}; margin-left: 8px;">{app_name}</span>
                        </td>
                    </tr>
                    <tr>
                        <td style="background-color: {BG_CARD}; border: 1px solid {BORDER}; border-radius: 12px; padding: 32px 28px;">
                            {content}
                        </td>
                    </tr>
                </table>
            </td>
        </tr>
    </table>
</body>
</html>"""


def _stat_row(label: str, value: str) -> str:
    return (
        f'<tr><td style="color: {TEXT_SECONDARY}; font-size: 14px; padding: 4px 0;">{label}</td>'
        f'<td align="right" style="color: {TEXT_PRIMARY}; font-size: 14px; font-weight: 600; padding: 4px 0;">{value}</td></tr>'
    )


def operator_day_summary(summary: DaySummary) -> tuple[str, str, str]:
    """
    Daily settlement summary sent to the operator.

    Returns:
        (subject, html_body, text_body)
    """
    day = summary.game_date.isoformat()
    price = format_usd(summary.actual_price)
    winner_count = len(summary.winners)
    closest = format_usd(summary.closest_difference) if summary.closest_difference is not None else "n/a"

    if summary.total_predictions == 0:
        subject = f"[Satoshi Daily] {day}: no predictions"
    else:
        subject = f"[Satoshi Daily] {day}: {price}, {winner_count} winner(s)"

    stats = "".join([
        _stat_row("Game date", day),
        _stat_row("Target time", escape(summary.target_label)),
        _stat_row("Official price", price),
        _stat_row("Price sources", str(summary.sources_used) if summary.sources_used else "n/a"),
        _stat_row("Total predictions", str(summary.total_predictions)),
        _stat_row("Players", str(summary.player_count)),
        _stat_row("Winners", str(winner_count)),
        _stat_row("Total payout", f"${summary.total_payout:.2f}"),
        _stat_row("Closest difference", closest),
    ])

    if summary.total_predictions == 0:
        detail = f'<p style="color: {TEXT_SECONDARY}; font-size: 15px; margin: 16px 0 0 0;">No predictions were made for this day.</p>'
    elif not summary.winners:
        detail = f'<p style="color: {TEXT_SECONDARY}; font-size: 15px; margin: 16px 0 0 0;">Nobody landed within the winning threshold.</p>'
    else:
        rows = "".join(
            f'<tr>'
            f'<td style="color: {TEXT_PRIMARY}; font-size: 13px; padding: 6px 4px;">{escape(w.masked_email)}</td>'
            f'<td align="right" style="color: {TEXT_PRIMARY}; font-size: 13px; padding: 6px 4px;">{format_usd(w.predicted_price)}</td>'
            f'<td align="right" style="color: {TEXT_SECONDARY}; font-size: 13px; padding: 6px 4px;">{format_usd(w.difference)}</td>'
            f'<td style="color: {ORANGE}; font-size: 13px; padding: 6px 4px;">{w.tier}</td>'
            f'<td align="right" style="color: {GREEN}; font-size: 13px; padding: 6px 4px;">${w.share:.2f}</td>'
            f'</tr>'
            for w in summary.winners
        )
        detail = f"""\
<h2 style="color: {TEXT_PRIMARY}; font-size: 16px; margin: 24px 0 8px 0;">Winners to pay</h2>
<table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%">
    <tr>
        <th align="left" style="color: {TEXT_SECONDARY}; font-size: 12px; padding: 4px;">Player</th>
        <th align="right" style="color: {TEXT_SECONDARY}; font-size: 12px; padding: 4px;">Predicted</th>
        <th align="right" style="color: {TEXT_SECONDARY}; font-size: 12px; padding: 4px;">Diff</th>
        <th align="left" style="color: {TEXT_SECONDARY}; font-size: 12px; padding: 4px;">Tier</th>
        <th align="right" style="color: {TEXT_SECONDARY}; font-size: 12px; padding: 4px;">Share</th>
    </tr>
    {rows}
</table>"""

    content = f"""\
<h1 style="color: {TEXT_PRIMARY}; font-size: 22px; font-weight: 700; margin: 0 0 16px 0;">Daily result for {day}</h1>
<table role="presentation" cellspacing="0" cellpadding="0" border="0" width="100%">
    {stats}
</table>
{detail}"""
    html_body = _base_layout(content)

    lines = [
        f"Daily result for {day}",
        "",
        f"Target time: {summary.target_label}",
        f"Official price: {price}",
        f"Total predictions: {summary.total_predictions}",
        f"Players: {summary.player_count}",
        f"Winners: {winner_count}",
        f"Total payout: ${summary.total_payout:.2f}",
        f"Closest difference: {closest}",
        "",
    ]
    if summary.total_predictions == 0:
        lines.append("No predictions were made for this day.")
    elif not summary.winners:
        lines.append("Nobody landed within the winning threshold.")
    else:
        lines.append("Winners to pay:")
        lines.extend(
            f"- {w.masked_email}: predicted {format_usd(w.predicted_price)}, "
            f"off by {format_usd(w.difference)}, {w.tier}, ${w.share:.2f}"
            for w in summary.winners
        )
    text_body = "\n".join(lines) + "\n\n-- Satoshi Daily"
    return subject, html_body, text_body

"""Operator notification for a settled day."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

import structlog

from satoshi_daily.config import get_settings
from satoshi_daily.email.service import EmailService, get_email_service
from satoshi_daily.email.templates import operator_day_summary

logger = structlog.get_logger()


@dataclass
class WinnerLine:
    masked_email: str
    predicted_price: int
    difference: int
    tier: str
    share: Decimal


@dataclass
class DaySummary:
    game_date: date
    target_label: str
    actual_price: int
    sources_used: int | None
    total_predictions: int
    player_count: int
    winners: list[WinnerLine] = field(default_factory=list)
    closest_difference: int | None = None

    @property
    def total_payout(self) -> Decimal:
        return sum((w.share for w in self.winners), Decimal("0.00"))


class OperatorNotifier:
    """Emails the daily summary to ``OPERATOR_EMAIL``."""

    def __init__(
        self,
        email_service: EmailService | None = None,
        operator_email: str | None = None,
    ) -> None:
        self._email_service = email_service
        self.operator_email = operator_email or get_settings().operator_email

    @property
    def email_service(self) -> EmailService:
        if self._email_service is None:
            self._email_service = get_email_service()
        return self._email_service

    async def send_day_summary(self, summary: DaySummary) -> bool:
        subject, html_body, text_body = operator_day_summary(summary)
        sent = await self.email_service.send_email(self.operator_email, subject, html_body, text_body)
        if not sent:
            logger.error("operator_summary_not_sent", date=summary.game_date.isoformat())
        return sent

"""Authentication bridge: captcha-gated sign-in without an email loop.

A verified captcha plus an email yields a one-time artefact returned in
the response body. The client presents it once to ``establish_session``.
Only the SHA-256 of the artefact is stored.
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from satoshi_daily.auth.captcha import CaptchaVerifier
from satoshi_daily.config import get_settings
from satoshi_daily.db.models import LoginToken, Profile
from satoshi_daily.errors import CaptchaFailed, InvalidLoginToken
from satoshi_daily.game.day_utils import utc_now

logger = structlog.get_logger()


@dataclass
class SignInResult:
    profile: Profile
    token_hash: str
    existing: bool


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _digest(artefact: str) -> str:
    return hashlib.sha256(artefact.encode()).hexdigest()


# ---------------------------------------------------------------------------
# Profile queries
# ---------------------------------------------------------------------------


async def get_profile_by_id(db: AsyncSession, player_id: str) -> Profile | None:
    result = await db.execute(select(Profile).where(Profile.id == player_id))
    return result.scalar_one_or_none()


async def get_profile_by_email(db: AsyncSession, email: str) -> Profile | None:
    result = await db.execute(select(Profile).where(Profile.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def get_or_create_profile(db: AsyncSession, email: str, now: datetime) -> tuple[Profile, bool]:
    """
    Returns:
        Tuple of (profile, existing). A unique-email race counts as existing.
    """
    email = normalize_email(email)
    profile = await get_profile_by_email(db, email)
    if profile is not None:
        return profile, True

    profile = Profile(email=email, created_at=now)
    db.add(profile)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        profile = await get_profile_by_email(db, email)
        if profile is None:
            raise
        return profile, True
    logger.info("profile_created", player_id=profile.id)
    return profile, False


# ---------------------------------------------------------------------------
# Sign-in and session
# ---------------------------------------------------------------------------


async def sign_in(
    db: AsyncSession,
    verifier: CaptchaVerifier,
    email: str,
    marketing_consent: bool,
    captcha_token: str,
    remote_ip: str | None = None,
    now: datetime | None = None,
) -> SignInResult:
    """
    Verify the captcha, find or create the profile and issue an artefact.

    Raises:
        CaptchaFailed: If the captcha provider does not confirm the token.
    """
    if now is None:
        now = utc_now()
    if not await verifier.verify(captcha_token, remote_ip):
        raise CaptchaFailed

    profile, existing = await get_or_create_profile(db, email, now)
    profile.marketing_consent = marketing_consent
    profile.consent_timestamp = now if marketing_consent else None

    settings = get_settings()
    artefact = hashlib.sha256(secrets.token_bytes(32)).hexdigest()
    db.add(
        LoginToken(
            profile_id=profile.id,
            token_hash=_digest(artefact),
            created_at=now,
            expires_at=now + timedelta(minutes=settings.login_token_ttl_minutes),
        )
    )
    await db.commit()
    logger.info("sign_in_issued", player_id=profile.id, existing=existing)
    return SignInResult(profile=profile, token_hash=artefact, existing=existing)


async def consume_login_token(db: AsyncSession, token_hash: str, now: datetime | None = None) -> Profile:
    """
    Exchange an artefact for its profile, exactly once.

    Raises:
        InvalidLoginToken: If unknown, expired or already used.
    """
    if now is None:
        now = utc_now()
    digest = _digest(token_hash)
    result = await db.execute(
        update(LoginToken)
        .where(
            LoginToken.token_hash == digest,
            LoginToken.used_at.is_(None),
            LoginToken.expires_at > now,
        )
        .values(used_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise InvalidLoginToken

    row = await db.execute(
        select(Profile).join(LoginToken, LoginToken.profile_id == Profile.id).where(LoginToken.token_hash == digest)
    )
    profile = row.scalar_one()
    await db.commit()
    return profile


# ---------------------------------------------------------------------------
# Marketing consent
# ---------------------------------------------------------------------------


async def unsubscribe(db: AsyncSession, email: str, now: datetime | None = None) -> bool:
    """Withdraw marketing consent. Returns False if no profile has this email."""
    if now is None:
        now = utc_now()
    result = await db.execute(
        update(Profile)
        .where(Profile.email == normalize_email(email))
        .values(marketing_consent=False, consent_timestamp=now)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    found = result.rowcount > 0
    logger.info("unsubscribe", found=found)
    return found

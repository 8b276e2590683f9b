"""Captcha verification against a Turnstile-style siteverify endpoint."""

from __future__ import annotations

import httpx
import structlog

from satoshi_daily.config import Settings, get_settings

logger = structlog.get_logger()


class CaptchaVerifier:
    """POSTs ``(secret, response)`` and trusts only ``{"success": true}``."""

    def __init__(
        self,
        secret_key: str,
        verify_url: str,
        timeout: float = 5.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.secret_key = secret_key
        self.verify_url = verify_url
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> CaptchaVerifier:
        if settings is None:
            settings = get_settings()
        return cls(
            secret_key=settings.captcha_secret_key,
            verify_url=settings.captcha_verify_url,
            timeout=settings.captcha_timeout_seconds,
        )

    async def _post(self, client: httpx.AsyncClient, data: dict[str, str]) -> httpx.Response:
        return await client.post(self.verify_url, data=data, timeout=self.timeout)

    async def verify(self, token: str, remote_ip: str | None = None) -> bool:
        """True only when the provider confirms the token."""
        if not token:
            return False
        data = {"secret": self.secret_key, "response": token}
        if remote_ip:
            data["remoteip"] = remote_ip
        try:
            if self._client is not None:
                response = await self._post(self._client, data)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, data)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("captcha_verify_failed", error=repr(exc))
            return False
        success = isinstance(body, dict) and body.get("success") is True
        if not success:
            logger.info("captcha_rejected", error_codes=body.get("error-codes") if isinstance(body, dict) else None)
        return success

"""Official BTC/USD price from several independent exchanges.

All configured sources are queried in parallel. The official price is the
median of the successful quotes (the mean when exactly two succeed),
rounded half-up to whole dollars. A single surviving source is accepted
but logged as a degraded quorum; no survivors raises
``PriceOracleUnavailable`` so the settlement worker retries next tick.
"""

from __future__ import annotations

import asyncio
import math
import statistics
from collections.abc import Callable
from dataclasses import dataclass, field
from types import TracebackType
from typing import Any

import httpx
import structlog

from satoshi_daily.config import Settings, get_settings
from satoshi_daily.errors import PriceOracleUnavailable
from satoshi_daily.game.scoring import round_usd

logger = structlog.get_logger()


@dataclass(frozen=True)
class PriceSource:
    """A public spot-price endpoint and how to read the price out of its JSON."""

    name: str
    url: str
    extract: Callable[[Any], Any]


def _coinbase_price(body: Any) -> Any:
    return body["data"]["amount"]


def _coingecko_price(body: Any) -> Any:
    return body["bitcoin"]["usd"]


def _binance_price(body: Any) -> Any:
    return body["price"]


KNOWN_SOURCES: dict[str, PriceSource] = {
    "coinbase": PriceSource(
        name="coinbase",
        url="https://api.coinbase.com/v2/prices/BTC-USD/spot",
        extract=_coinbase_price,
    ),
    "coingecko": PriceSource(
        name="coingecko",
        url="https://api.coingecko.com/api/v3/simple/price?ids=bitcoin&vs_currencies=usd",
        extract=_coingecko_price,
    ),
    "binance": PriceSource(
        name="binance",
        url="https://api.binance.com/api/v3/ticker/price?symbol=BTCUSDT",
        extract=_binance_price,
    ),
}


@dataclass(frozen=True)
class SourceQuote:
    source: str
    price: float


@dataclass
class OfficialPrice:
    """Result of one oracle call."""

    price: int
    sources_used: int
    quotes: list[SourceQuote] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return self.sources_used < 2


def parse_positive_price(raw: Any) -> float:
    """Coerce a JSON price field (number or numeric string) to a positive float.

    Raises:
        ValueError: If the value is missing, non-numeric, non-finite or <= 0.
    """
    if isinstance(raw, bool) or raw is None:
        msg = f"Not a price: {raw!r}"
        raise ValueError(msg)
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        value = float(raw.strip())
    else:
        msg = f"Not a price: {raw!r}"
        raise ValueError(msg)
    if not math.isfinite(value) or value <= 0:
        msg = f"Not a positive price: {raw!r}"
        raise ValueError(msg)
    return value


def median_price(values: list[float]) -> int:
    """Median of the quotes, rounded half-up to whole USD."""
    if not values:
        msg = "median of no quotes"
        raise ValueError(msg)
    return round_usd(statistics.median(values))


def resolve_sources(names: list[str]) -> list[PriceSource]:
    """Map configured source identifiers to endpoints, preserving order.

    Raises:
        ValueError: If an identifier is unknown.
    """
    sources = []
    for name in names:
        source = KNOWN_SOURCES.get(name.strip().lower())
        if source is None:
            msg = f"Unknown price source: {name}"
            raise ValueError(msg)
        sources.append(source)
    return sources


class PriceOracle:
    """Parallel multi-exchange price fetcher.

    Use as an async context manager when it should own its HTTP client;
    pass ``client`` to share one (tests pass a client on a mock transport).
    """

    def __init__(
        self,
        sources: list[PriceSource],
        client: httpx.AsyncClient | None = None,
        timeout: float = 5.0,
    ) -> None:
        self.sources = sources
        self.timeout = timeout
        self._client = client
        self._owns_client = False

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> PriceOracle:
        if settings is None:
            settings = get_settings()
        return cls(
            sources=resolve_sources(settings.price_sources),
            client=client,
            timeout=settings.price_request_timeout_seconds,
        )

    async def __aenter__(self) -> PriceOracle:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None
            self._owns_client = False

    async def _fetch_quote(self, client: httpx.AsyncClient, source: PriceSource) -> SourceQuote | None:
        """One source; any transport, status or parse failure yields None."""
        try:
            response = await client.get(
                source.url,
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            price = parse_positive_price(source.extract(response.json()))
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
            logger.warning("price_source_failed", source=source.name, error=repr(exc))
            return None
        return SourceQuote(source=source.name, price=price)

    async def fetch_official_price(self) -> OfficialPrice:
        """Query every source once and combine the survivors.

        Raises:
            PriceOracleUnavailable: If no source returned a usable price.
        """
        if self._client is None:
            async with self:
                return await self.fetch_official_price()

        results = await asyncio.gather(
            *(self._fetch_quote(self._client, source) for source in self.sources)
        )
        quotes = [quote for quote in results if quote is not None]

        if not quotes:
            logger.error(
                "price_oracle_unavailable",
                sources=[s.name for s in self.sources],
            )
            raise PriceOracleUnavailable

        price = median_price([q.price for q in quotes])
        if len(quotes) == 1:
            logger.warning(
                "price_oracle_degraded_quorum",
                source=quotes[0].source,
                price=price,
            )
        else:
            logger.info(
                "price_oracle_price",
                price=price,
                sources=[q.source for q in quotes],
            )
        return OfficialPrice(price=price, sources_used=len(quotes), quotes=quotes)

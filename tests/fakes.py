"""In-memory stand-ins for Redis, the captcha provider, the price oracle and the notifier."""

from __future__ import annotations

from typing import Any

from satoshi_daily.errors import PriceOracleUnavailable
from satoshi_daily.pricing.oracle import OfficialPrice


class FakePipeline:
    def __init__(self, redis: FakeRedis) -> None:
        self._redis = redis
        self._ops: list[tuple[str, tuple[Any, ...]]] = []

    def incr(self, key: str) -> FakePipeline:
        self._ops.append(("incr", (key,)))
        return self

    def expire(self, key: str, seconds: int) -> FakePipeline:
        self._ops.append(("expire", (key, seconds)))
        return self

    async def execute(self) -> list[Any]:
        results = []
        for name, args in self._ops:
            results.append(await getattr(self._redis, name)(*args))
        self._ops.clear()
        return results


class FakeRedis:
    """In-memory subset of redis.asyncio used by the app. TTLs are recorded, not enforced."""

    def __init__(self) -> None:
        self.data: dict[str, Any] = {}
        self.ttls: dict[str, int] = {}

    async def set(self, key: str, value: Any, nx: bool = False, ex: int | None = None) -> bool | None:
        if nx and key in self.data:
            return None
        self.data[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def get(self, key: str) -> Any:
        return self.data.get(key)

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def incr(self, key: str) -> int:
        value = int(self.data.get(key, 0)) + 1
        self.data[key] = value
        return value

    async def expire(self, key: str, seconds: int) -> bool:
        self.ttls[key] = seconds
        return key in self.data

    async def ping(self) -> bool:
        return True

    def pipeline(self) -> FakePipeline:
        return FakePipeline(self)

    async def aclose(self) -> None:
        pass


class StubVerifier:
    """Accepts exactly the captcha token ``"ok"``."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str | None]] = []

    async def verify(self, token: str, remote_ip: str | None = None) -> bool:
        self.calls.append((token, remote_ip))
        return token == "ok"


class RecordingNotifier:
    def __init__(self, succeed: bool = True) -> None:
        self.summaries: list[Any] = []
        self.succeed = succeed

    async def send_day_summary(self, summary: Any) -> bool:
        self.summaries.append(summary)
        return self.succeed


class FixedOracle:
    """Returns a fixed official price; ``price=None`` simulates every source failing."""

    def __init__(self, price: int | None = 100_000, sources_used: int = 3) -> None:
        self.price = price
        self.sources_used = sources_used
        self.calls = 0

    async def fetch_official_price(self) -> OfficialPrice:
        self.calls += 1
        if self.price is None:
            raise PriceOracleUnavailable
        return OfficialPrice(price=self.price, sources_used=self.sources_used)



class FlakyOracle(FixedOracle):
    """Fails on the given 1-based call numbers, otherwise returns the fixed price."""

    def __init__(self, price: int, fail_on_calls: set[int]) -> None:
        super().__init__(price)
        self.fail_on_calls = fail_on_calls

    async def fetch_official_price(self) -> OfficialPrice:
        if self.calls + 1 in self.fail_on_calls:
            self.calls += 1
            raise PriceOracleUnavailable
        return await super().fetch_official_price()

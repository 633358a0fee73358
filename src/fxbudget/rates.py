"""Exchange rate sources, caching and ledger currency conversion."""

import json
import logging
import os
import tempfile
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any, ClassVar, Protocol

import requests

from fxbudget.config import Settings
from fxbudget.ledger import Ledger
from fxbudget.models import ConversionResult, ExchangeRateSet
from fxbudget.utils.formatting import round_money
from fxbudget.utils.parsing import to_decimal

logger = logging.getLogger(__name__)

EXCHANGE_RATE_API_URL = "https://v6.exchangerate-api.com/v6/{api_key}/latest"
FRANKFURTER_API_URL = "https://api.frankfurter.app/latest"
CACHE_KEY_PREFIX = "exchange_rates_"
CACHE_TTL = 21600  # 6 hours
DEFAULT_TIMEOUT = 10


@dataclass
class RateSourceResult:
    """Result of asking one rate source for a rate set."""

    source: str
    rates: dict[str, Decimal] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        """Return True if the source produced rates."""
        return self.rates is not None


def coerce_rates(mapping: dict[str, Any]) -> dict[str, Decimal]:
    """Normalize a provider's rate mapping to upper-case codes and Decimals.

    Entries with non-numeric values are dropped.
    """
    rates: dict[str, Decimal] = {}
    for code, value in mapping.items():
        rate = to_decimal(value)
        if rate is None:
            logger.debug("Ignoring non-numeric rate for %s: %r", code, value)
            continue
        rates[str(code).strip().upper()] = rate
    return rates


class RateSource(ABC):
    """Base class for HTTP exchange rate sources.

    Subclasses build the request URL and pick the rate mapping out of the
    decoded payload. ``fetch`` never raises: every failure comes back as a
    RateSourceResult with an error message.
    """

    name: ClassVar[str] = "unknown"

    def __init__(
        self,
        endpoint: str,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize source with its endpoint and a shared HTTP session."""
        self.endpoint = endpoint
        self.timeout = timeout
        self._session = session or requests.Session()

    @abstractmethod
    def build_url(self, base_currency: str) -> str:
        """Return the request URL for a base currency."""

    @abstractmethod
    def extract_rates(self, base_currency: str, payload: dict[str, Any]) -> RateSourceResult:
        """Extract the rate mapping from a decoded 200 response."""

    def fetch(self, base_currency: str) -> RateSourceResult:
        """Fetch the rate set for a base currency."""
        url = self.build_url(base_currency)
        try:
            response = self._session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            return self.failure(f"transport error: {e}")

        if response.status_code != 200:
            return self.failure(f"HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError:
            return self.failure("invalid JSON")

        if not isinstance(payload, dict):
            return self.failure("invalid JSON")

        return self.extract_rates(base_currency, payload)

    def success(self, rates: dict[str, Decimal]) -> RateSourceResult:
        return RateSourceResult(source=self.name, rates=rates)

    def failure(self, error: str) -> RateSourceResult:
        return RateSourceResult(source=self.name, error=error)


class ExchangeRateApiSource(RateSource):
    """exchangerate-api.com: ``<endpoint>/<BASE>``, rates in ``conversion_rates``."""

    name = "exchangerate-api"

    def build_url(self, base_currency: str) -> str:
        return f"{self.endpoint.rstrip('/')}/{base_currency}"

    def extract_rates(self, base_currency: str, payload: dict[str, Any]) -> RateSourceResult:
        result = payload.get("result")
        if result != "success":
            return self.failure(f"provider returned failure ({result})")

        mapping = payload.get("conversion_rates")
        if not isinstance(mapping, dict):
            return self.failure("missing rates")

        return self.success(coerce_rates(mapping))


class FrankfurterSource(RateSource):
    """frankfurter.app: ``<endpoint>?from=<BASE>``, rates in ``rates``.

    The payload leaves out the base currency, so it is added as 1.
    """

    name = "frankfurter"

    def build_url(self, base_currency: str) -> str:
        return f"{self.endpoint}?from={base_currency}"

    def extract_rates(self, base_currency: str, payload: dict[str, Any]) -> RateSourceResult:
        mapping = payload.get("rates")
        if not isinstance(mapping, dict):
            return self.failure("missing rates")

        rates = coerce_rates(mapping)
        rates[base_currency] = Decimal("1")
        return self.success(rates)


class RateCache(Protocol):
    """Key-value store whose entries expire after a TTL in seconds."""

    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str, ttl: int) -> None: ...


class MemoryRateCache:
    """Process-local TTL cache."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, str]] = {}

    def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def put(self, key: str, value: str, ttl: int) -> None:
        self._entries[key] = (self._clock() + ttl, value)


class FileRateCache:
    """TTL cache persisted as a JSON file, shared across runs.

    Each entry stores its value and an absolute ``expires_at`` timestamp.
    Expired entries are dropped on the next write.
    """

    def __init__(self, path: Path, clock: Callable[[], float] = time.time) -> None:
        self.path = path
        self._clock = clock

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Rate cache {self.path} is not a JSON object")
        return data

    def get(self, key: str) -> str | None:
        entry = self._read().get(key)
        if not isinstance(entry, dict):
            return None
        if self._clock() >= float(entry.get("expires_at", 0)):
            return None
        value = entry.get("value")
        return value if isinstance(value, str) else None

    def put(self, key: str, value: str, ttl: int) -> None:
        now = self._clock()
        try:
            entries = self._read()
        except ValueError:
            logger.warning("Discarding unreadable rate cache at %s", self.path)
            entries = {}

        entries = {
            k: v
            for k, v in entries.items()
            if isinstance(v, dict) and float(v.get("expires_at", 0)) > now
        }
        entries[key] = {"value": value, "expires_at": now + ttl}

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(entries, f)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class ExchangeRateProvider:
    """
    Resolve rate sets cache-first, trying each source in order.

    Usage:
        provider = ExchangeRateProvider.from_config(get_rates_config(config))
        rate = provider.get_exchange_rate("USD", "EUR")
    """

    def __init__(
        self,
        sources: Sequence[RateSource],
        cache: RateCache | None = None,
        ttl: int = CACHE_TTL,
    ) -> None:
        """
        Initialize provider.

        Args:
            sources: Rate sources, tried in order until one succeeds
            cache: TTL cache for resolved rate sets (default in-memory)
            ttl: Cache lifetime in seconds
        """
        self.sources = list(sources)
        self.cache: RateCache = cache if cache is not None else MemoryRateCache()
        self.ttl = ttl

    @classmethod
    def from_config(
        cls,
        rates_config: dict[str, Any],
        cache: RateCache | None = None,
        session: requests.Session | None = None,
    ) -> "ExchangeRateProvider":
        """
        Build a provider from the ``rates`` config section.

        The exchangerate-api source is only used when an API key or an
        explicit ``primary_url`` is configured; Frankfurter needs neither.
        """
        session = session or requests.Session()
        timeout = float(rates_config.get("timeout") or DEFAULT_TIMEOUT)
        sources: list[RateSource] = []

        primary_url = rates_config.get("primary_url")
        api_key = rates_config.get("api_key")
        if not primary_url and api_key:
            primary_url = EXCHANGE_RATE_API_URL.format(api_key=api_key)
        if primary_url:
            sources.append(ExchangeRateApiSource(primary_url, session=session, timeout=timeout))
        else:
            logger.debug("No exchangerate-api key configured, using fallback source only")

        fallback_url = rates_config.get("fallback_url") or FRANKFURTER_API_URL
        sources.append(FrankfurterSource(fallback_url, session=session, timeout=timeout))

        ttl = int(rates_config.get("cache_ttl") or CACHE_TTL)
        return cls(sources, cache=cache, ttl=ttl)

    @staticmethod
    def cache_key(base_currency: str) -> str:
        return CACHE_KEY_PREFIX + base_currency

    def get_rates(self, base_currency: str) -> ExchangeRateSet | None:
        """
        Get the rate set for a base currency.

        Returns:
            ExchangeRateSet, or None if no source could provide one
        """
        base = base_currency.strip().upper()

        cached = self._read_cache(base)
        if cached is not None:
            logger.info("Using cached exchange rates for %s", base)
            return ExchangeRateSet(base_currency=base, rates=cached)

        for index, source in enumerate(self.sources):
            result = source.fetch(base)
            if result.ok and result.rates is not None:
                logger.info("Fetched %d exchange rates for %s from %s",
                            len(result.rates), base, source.name)
                self._write_cache(base, result.rates)
                return ExchangeRateSet(base_currency=base, rates=result.rates)

            logger.warning("%s rates for %s failed: %s", source.name, base, result.error)
            if index + 1 < len(self.sources):
                logger.info("Trying next exchange rate source: %s", self.sources[index + 1].name)

        logger.error("All exchange rate sources failed for %s", base)
        return None

    def get_exchange_rate(self, from_currency: str, to_currency: str) -> Decimal | None:
        """
        Get units of ``to_currency`` per one unit of ``from_currency``.

        Codes are case-insensitive. Identical codes return 1 without I/O.
        """
        source = str(from_currency).strip().upper()
        target = str(to_currency).strip().upper()
        if source == target:
            return Decimal("1")

        rate_set = self.get_rates(source)
        if rate_set is None:
            logger.warning("Could not fetch rates for %s", source)
            return None

        rate = rate_set.rate_for(target)
        if rate is None:
            logger.warning("Rate not found for %s in %s rates", target, source)
        return rate

    def convert(self, amount: Decimal, from_currency: str, to_currency: str) -> Decimal | None:
        """Convert an amount between currencies, rounded to cents."""
        rate = self.get_exchange_rate(from_currency, to_currency)
        if rate is None:
            return None
        return round_money(amount * rate)

    def _read_cache(self, base: str) -> dict[str, Decimal] | None:
        try:
            raw = self.cache.get(self.cache_key(base))
            if raw is None:
                return None
            data = json.loads(raw)
        except (OSError, ValueError, TypeError) as e:
            logger.warning("Rate cache read error: %s", e)
            return None

        if not isinstance(data, dict):
            logger.warning("Ignoring malformed cached rates for %s", base)
            return None
        return coerce_rates(data)

    def _write_cache(self, base: str, rates: dict[str, Decimal]) -> None:
        payload = json.dumps({code: str(rate) for code, rate in rates.items()})
        try:
            self.cache.put(self.cache_key(base), payload, self.ttl)
        except (OSError, ValueError, TypeError) as e:
            logger.warning("Rate cache write error: %s", e)


def update_all_conversions(
    ledger: Ledger,
    settings: Settings,
    provider: ExchangeRateProvider,
) -> ConversionResult:
    """
    Back-fill base-currency amounts from local amounts.

    The whole ledger is read, every conversion computed in memory, and the
    result saved in one write. Rows without a local amount or currency, or
    with a currency missing from the rate set, keep their old base amount.

    Args:
        ledger: Ledger to read and write back
        settings: Settings providing the base currency
        provider: Rate provider

    Returns:
        ConversionResult with counts and the unknown (row, currency) pairs
    """
    base = settings.base_currency
    records = ledger.load()
    if not records:
        logger.info("No transactions to update")
        return ConversionResult()

    rate_set = provider.get_rates(base)
    if rate_set is None:
        logger.error("Cannot update: exchange rates unavailable for %s", base)
        return ConversionResult(rates_available=False)

    result = ConversionResult()
    for index, record in enumerate(records):
        # Row numbers as a spreadsheet user sees them, after the header row
        row_number = index + 2
        currency = (record.currency or "").strip().upper()
        amount_local = to_decimal(record.amount_local)

        if amount_local is None or not currency:
            logger.debug("Row %d: no local amount or currency, skipped", row_number)
            result.skipped += 1
            continue

        if currency == base:
            amount_base = amount_local
        else:
            rate = rate_set.rate_for(currency)
            if not rate:
                logger.warning("No rate for currency: %s (row %d)", currency, row_number)
                result.unknown_currencies.append((row_number, currency))
                result.skipped += 1
                continue
            # rate = units of `currency` per 1 base, so divide
            amount_base = amount_local / rate

        record.amount_base = round_money(amount_base)
        result.updated += 1

    if result.updated:
        ledger.save(records)
    logger.info("Updated %d of %d transactions to %s", result.updated, len(records), base)
    return result

"""
Currency normalization for stock costing.

This module provides:
- CurrencyNormalizer: converts an amount in any currency into the base
  currency (RON by default) using an injected rate lookup
- ExchangeRateCache: explicit, process-wide rate cache with a freshness
  window and optional background refresh
- BnrRateSource: fetches the National Bank of Romania reference rates

Rates are "base currency per one unit of the foreign currency", so
``amount_in_base = amount * rate``.

Cache policy:
- fresh entry: returned directly
- stale entry: last-known rate returned immediately, a background refresh
  is started (callers never wait for it)
- unknown currency: one synchronous fetch, then RateUnavailableError if
  the currency is still missing

Example:
    >>> source = BnrRateSource()
    >>> cache = ExchangeRateCache(source, ttl_seconds=600)
    >>> normalizer = CurrencyNormalizer(cache.get_rate)
    >>> normalizer.to_base_currency(Decimal("10"), "EUR")
    Decimal('49.7650')
"""

import logging
import threading
import time
import xml.etree.ElementTree as ET
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Optional

import requests

from src.utils.config import get_config
from .dto_utils import Number, to_decimal
from .exceptions import RateUnavailableError
from .logging_utils import get_service_logger, log_operation

logger = get_service_logger(__name__)

RateLookup = Callable[[str], Decimal]


def _normalize_code(currency_code: str) -> str:
    return (currency_code or "").strip().upper()


# ============================================================================
# Currency Normalizer
# ============================================================================


class CurrencyNormalizer:
    """
    Converts money amounts into the base currency.

    Args:
        rate_lookup: Callable returning the base-currency rate of a code;
            raises RateUnavailableError when it cannot
        base_currency: Reporting currency (default from config, "RON")
    """

    def __init__(self, rate_lookup: RateLookup, base_currency: Optional[str] = None):
        self._rate_lookup = rate_lookup
        self._base_currency = _normalize_code(base_currency or get_config().base_currency)

    @property
    def base_currency(self) -> str:
        return self._base_currency

    def to_base_currency(self, amount: Number, currency_code: str) -> Decimal:
        """
        Convert ``amount`` from ``currency_code`` into the base currency.

        Amounts already in the base currency are returned unchanged without
        consulting the rate lookup.

        Args:
            amount: Amount to convert
            currency_code: ISO code of ``amount``

        Returns:
            Amount in the base currency

        Raises:
            RateUnavailableError: If no rate can be resolved
        """
        value = to_decimal(amount)
        code = _normalize_code(currency_code)
        if code == self._base_currency:
            return value
        rate = self._rate_lookup(code)
        if rate is None:
            raise RateUnavailableError(code, "rate lookup returned no rate")
        return value * to_decimal(rate)


# ============================================================================
# Exchange Rate Cache
# ============================================================================


class ExchangeRateCache:
    """
    Process-wide exchange-rate cache with its own refresh policy.

    Construct one per process and hand ``get_rate`` to every
    CurrencyNormalizer that needs it.

    Attributes:
        _source: Object with ``fetch_rates() -> Dict[str, Decimal]``
        _ttl: Seconds a fetched table stays fresh
        _rates: Last-known rates by currency code
        _fetched_at: Monotonic time of the last successful fetch
    """

    def __init__(
        self,
        rate_source,
        ttl_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._source = rate_source
        self._ttl = ttl_seconds if ttl_seconds is not None else get_config().rate_cache_ttl_seconds
        self._clock = clock
        self._rates: Dict[str, Decimal] = {}
        self._fetched_at: Optional[float] = None
        self._lock = threading.Lock()
        self._refresh_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def is_fresh(self) -> bool:
        """True if the last successful fetch is within the freshness window."""
        with self._lock:
            if self._fetched_at is None:
                return False
            return (self._clock() - self._fetched_at) < self._ttl

    def rates(self) -> Dict[str, Decimal]:
        """Copy of the last-known rate table."""
        with self._lock:
            return dict(self._rates)

    def get_rate(self, currency_code: str) -> Decimal:
        """
        Get the base-currency rate for ``currency_code``.

        Args:
            currency_code: ISO currency code

        Returns:
            Rate (base currency per one unit of ``currency_code``)

        Raises:
            RateUnavailableError: If the currency has never been resolved and
                a fetch fails or does not list it
        """
        code = _normalize_code(currency_code)
        with self._lock:
            rate = self._rates.get(code)

        if rate is not None:
            if not self.is_fresh():
                self.refresh_in_background()
            return rate

        if self.is_fresh():
            raise RateUnavailableError(code, "currency not listed by rate source")

        try:
            self.refresh()
        except RateUnavailableError as e:
            raise RateUnavailableError(code, e.reason) from e

        with self._lock:
            rate = self._rates.get(code)
        if rate is None:
            raise RateUnavailableError(code, "currency not listed by rate source")
        return rate

    def refresh(self) -> None:
        """
        Fetch the rate table synchronously.

        Raises:
            RateUnavailableError: If the source cannot deliver rates
        """
        with self._refresh_lock:
            rates = self._source.fetch_rates()
            with self._lock:
                self._rates.update({_normalize_code(code): rate for code, rate in rates.items()})
                self._fetched_at = self._clock()
        log_operation(
            logger, operation="refresh_rates", outcome="success", currencies=len(rates)
        )

    def refresh_in_background(self) -> bool:
        """
        Start a one-off refresh on a daemon thread unless one is running.

        Returns:
            True if a refresh thread was started
        """
        if self._refresh_lock.locked():
            return False
        thread = threading.Thread(
            target=self._refresh_quietly, name="ExchangeRateRefresh", daemon=True
        )
        thread.start()
        return True

    def _refresh_quietly(self) -> None:
        try:
            self.refresh()
        except RateUnavailableError as e:
            # Last-known rates stay in place
            log_operation(
                logger,
                operation="refresh_rates",
                outcome="failed",
                level=logging.WARNING,
                error=str(e),
            )

    def start(self, interval_seconds: Optional[int] = None) -> None:
        """
        Start periodic background refreshes.

        Args:
            interval_seconds: Seconds between refreshes (default: the TTL)
        """
        if self._thread and self._thread.is_alive():
            logger.warning("Exchange rate refresher is already running")
            return

        interval = interval_seconds or self._ttl
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._refresh_loop,
            args=(interval,),
            name="ExchangeRateRefresher",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"Exchange rate refresher started (interval: {interval}s)")

    def stop(self, timeout: float = 2.0) -> None:
        """
        Stop periodic refreshes and wait for the thread to finish.

        Args:
            timeout: Maximum seconds to wait for thread termination
        """
        if not self._thread or not self._thread.is_alive():
            return
        self._stop_event.set()
        self._thread.join(timeout=timeout)
        if self._thread.is_alive():
            logger.warning("Exchange rate refresher did not stop within timeout")
        else:
            logger.info("Exchange rate refresher stopped")

    def _refresh_loop(self, interval: int) -> None:
        while not self._stop_event.is_set():
            self._refresh_quietly()
            self._stop_event.wait(interval)


# ============================================================================
# BNR rate source
# ============================================================================


def parse_bnr_rates(content) -> Dict[str, Decimal]:
    """
    Parse a BNR ``nbrfxrates.xml`` document.

    The first ``Cube`` element holds one ``Rate`` per currency; a
    ``multiplier`` attribute (e.g. 100 for HUF) means the value is quoted
    per that many units.

    Args:
        content: XML document (bytes or str)

    Returns:
        Currency code -> RON per one unit

    Raises:
        ValueError: If the document has no Cube element or a rate is invalid
    """
    root = ET.fromstring(content)
    cube = next((el for el in root.iter() if el.tag.split("}")[-1] == "Cube"), None)
    if cube is None:
        raise ValueError("No Cube element in rate document")

    rates: Dict[str, Decimal] = {}
    for node in cube:
        if node.tag.split("}")[-1] != "Rate":
            continue
        code = _normalize_code(node.get("currency"))
        try:
            value = Decimal((node.text or "").strip())
            multiplier = Decimal(node.get("multiplier", "1"))
        except InvalidOperation as e:
            raise ValueError(f"Invalid rate for {code}: {node.text!r}") from e
        if code:
            rates[code] = value / multiplier
    return rates


class BnrRateSource:
    """
    Rate source backed by the National Bank of Romania XML feed.

    Args:
        url: Feed URL (default from config)
        retries: Attempts per fetch (default from config)
        timeout: HTTP timeout in seconds (default from config)
        http: Optional requests.Session to reuse connections

    Raises:
        ValueError: If retries is below 1 or timeout is not positive
    """

    def __init__(
        self,
        url: Optional[str] = None,
        retries: Optional[int] = None,
        timeout: Optional[int] = None,
        http: Optional[requests.Session] = None,
    ):
        config = get_config()
        self.url = url if url is not None else config.rate_source_url
        self.retries = retries if retries is not None else config.rate_fetch_retries
        self.timeout = timeout if timeout is not None else config.rate_fetch_timeout
        if self.retries < 1:
            raise ValueError(f"retries must be >= 1, got {self.retries}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        self._http = http or requests.Session()

    def fetch_rates(self) -> Dict[str, Decimal]:
        """
        Download and parse the rate table, retrying on failure.

        Returns:
            Currency code -> RON per one unit

        Raises:
            RateUnavailableError: If every attempt fails
        """
        last_error: Optional[Exception] = None
        for attempt in range(1, self.retries + 1):
            try:
                response = self._http.get(self.url, timeout=self.timeout)
                response.raise_for_status()
                return parse_bnr_rates(response.content)
            except (requests.RequestException, ET.ParseError, ValueError) as e:
                last_error = e
                log_operation(
                    logger,
                    operation="fetch_rates",
                    outcome="attempt_failed",
                    level=logging.WARNING,
                    attempt=attempt,
                    url=self.url,
                    error=str(e),
                )
        raise RateUnavailableError(
            None, f"{self.url} failed after {self.retries} attempt(s): {last_error}"
        )


def create_currency_normalizer(rate_source=None) -> CurrencyNormalizer:
    """
    Build a normalizer backed by a fresh ExchangeRateCache.

    Call once per process and share the result.

    Args:
        rate_source: Optional rate source (default: BnrRateSource)

    Returns:
        CurrencyNormalizer using the cache's get_rate
    """
    cache = ExchangeRateCache(rate_source or BnrRateSource())
    return CurrencyNormalizer(cache.get_rate)

# perfreport/audit/psi.py
import asyncio
import logging
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlparse

import aiohttp
from aiohttp import ClientTimeout
from aiohttp.client_exceptions import ClientError

from ..errors import AuditEngineError
from .findings import MeasurementRun

PAGESPEED_API = "https://www.googleapis.com/pagespeedonline/v5/runPagespeed"
CATEGORIES = ("performance", "seo", "accessibility", "best-practices")

logger = logging.getLogger(__name__)


def normalize_url(url: str) -> str:
    """Ensure the URL has a scheme. Default to https:// if missing."""
    u = (url or "").strip()
    if not u:
        return ""
    parsed = urlparse(u)
    if not parsed.scheme:
        u = "https://" + u
    return u


def _extract_retry_after(resp: aiohttp.ClientResponse) -> Optional[float]:
    """Get Retry-After seconds if present."""
    ra = resp.headers.get("Retry-After")
    if not ra:
        return None
    try:
        return float(ra)
    except ValueError:
        return None


class PageSpeedAuditEngine:
    """
    Audit engine backed by the PageSpeed Insights API.

    PSI runs Lighthouse remotely and returns the same `lighthouseResult`
    object a local run produces, so the raw audit records carry `id`,
    `displayValue`, `guidanceLevel` and `metricSavings` unchanged.

    Retries its own transient failures (429, 5xx, timeouts) within
    `max_attempts`; when the budget is spent it raises AuditEngineError.
    """

    def __init__(
        self,
        api_key: str = "",
        strategy: str = "mobile",
        *,
        per_attempt_timeout: float = 120.0,
        max_attempts: int = 3,
        base_backoff: float = 1.0,
        max_backoff: float = 6.0,
    ):
        self.api_key = api_key
        self.strategy = strategy
        self.per_attempt_timeout = per_attempt_timeout
        self.max_attempts = max_attempts
        self.base_backoff = base_backoff
        self.max_backoff = max_backoff

    def _params(self, url: str):
        params = [("url", url), ("strategy", self.strategy)] + [("category", c) for c in CATEGORIES]
        if self.api_key:
            params.append(("key", self.api_key))
        return params

    async def _one_attempt(
        self, session: aiohttp.ClientSession, url: str
    ) -> Tuple[Optional[Dict[str, Any]], Optional[float], Optional[str]]:
        """
        Perform a single HTTP request to PSI.
        Returns (lhr, retry_after_seconds, error). A None lhr with no error
        text means the attempt is retryable.
        """
        async with session.get(PAGESPEED_API, params=self._params(url)) as resp:
            if resp.status == 429:
                ra = _extract_retry_after(resp) or 2.0
                logger.warning("[PSI] 429 for %s, retry-after=%.2fs", url, ra)
                return None, ra, None

            if resp.status >= 500:
                logger.warning("[PSI] %s returned HTTP %s for %s", PAGESPEED_API, resp.status, url)
                return None, None, None

            if resp.status != 200:
                # Non-retryable client error (e.g., invalid URL)
                text = await resp.text()
                logger.error("[PSI] HTTP %s for %s. Body: %s", resp.status, url, text[:500])
                return None, None, f"PageSpeed Insights returned HTTP {resp.status}"

            data = await resp.json()
            lhr = data.get("lighthouseResult")
            if not lhr:
                return None, None, "PageSpeed Insights response has no lighthouseResult"
            return lhr, None, None

    async def run(self, url: str) -> MeasurementRun:
        target = normalize_url(url)
        if not target:
            raise AuditEngineError("Empty or invalid URL input")

        client_timeout = ClientTimeout(
            total=self.per_attempt_timeout,
            sock_connect=min(10.0, self.per_attempt_timeout),
        )

        async with aiohttp.ClientSession(timeout=client_timeout, raise_for_status=False) as session:
            for attempt in range(1, self.max_attempts + 1):
                retry_after = None
                try:
                    lhr, retry_after, error = await self._one_attempt(session, target)
                except asyncio.TimeoutError:
                    logger.warning("[PSI] Attempt %d/%d timed out for %s", attempt, self.max_attempts, target)
                    lhr, error = None, None
                except ClientError as ce:
                    logger.warning("[PSI] ClientError on attempt %d/%d for %s: %s", attempt, self.max_attempts, target, ce)
                    lhr, error = None, None

                if error:
                    raise AuditEngineError(error)
                if lhr is not None:
                    return MeasurementRun.from_lhr(lhr)

                if attempt < self.max_attempts:
                    # Respect Retry-After if present; otherwise exponential backoff
                    if retry_after is not None:
                        sleep_for = retry_after
                    else:
                        sleep_for = min(self.max_backoff, self.base_backoff * (2 ** (attempt - 1)))
                    await asyncio.sleep(sleep_for)

        raise AuditEngineError(f"Failed to fetch Lighthouse report for {target} after {self.max_attempts} attempts")

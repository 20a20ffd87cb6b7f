"""HTTP health probe for environment stacks."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import aiohttp

logger = logging.getLogger(__name__)


@dataclass
class HealthResult:
    healthy: bool
    message: str
    status_code: int | None = None


class HealthProbe:
    """GET a URL with a bounded timeout and classify the outcome.

    Any 2xx response is healthy.  Other responses, timeouts and connection
    errors are unhealthy; the probe itself never raises for them.
    """

    def __init__(self, timeout_ms: int = 1000) -> None:
        self.timeout_ms = timeout_ms

    async def probe(self, url: str) -> HealthResult:
        timeout = aiohttp.ClientTimeout(total=self.timeout_ms / 1000)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as http:
                async with http.get(url) as resp:
                    if 200 <= resp.status < 300:
                        return HealthResult(True, f"HTTP {resp.status}", resp.status)
                    message = f"HTTP {resp.status} {resp.reason or ''}".rstrip()
                    return HealthResult(False, message, resp.status)
        except asyncio.TimeoutError:
            return HealthResult(False, "Timeout")
        except (aiohttp.ClientError, ValueError, OSError) as exc:
            logger.debug("[health] probe %s failed: %s", url, exc)
            return HealthResult(False, str(exc) or exc.__class__.__name__)

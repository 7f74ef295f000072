from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import httpx
from loguru import logger

from guidewriter.config import settings
from guidewriter.models.routes import CandidateRoute, ValidatedRoute
from guidewriter.services.rate_limit import KeyedRateLimiter
from guidewriter.tools import link_cache
from guidewriter.tools.web_utils import extract_domain, headline_text

Sleep = Callable[[float], Awaitable[None]]

USER_AGENT = "Mozilla/5.0 (compatible; GuideWriterLinkValidator/1.0)"

# Matched against the title, top headings and error containers only.
NEGATIVE_MARKERS = (
    "page not found",
    "not found",
    "page doesn't exist",
    "page does not exist",
    "no longer exists",
    "has been removed",
)

# Matched against raw markup; route pages carry grade and route-type widgets.
POSITIVE_MARKERS = (
    "rateyds",
    "ratehueco",
    "route-type",
    "description-details",
    "route-stars",
)


def classify_page(html: str) -> bool:
    """Valid only with no negative marker and at least one positive marker."""
    text = headline_text(html)
    if any(marker in text for marker in NEGATIVE_MARKERS):
        return False
    markup = html.lower()
    return any(marker in markup for marker in POSITIVE_MARKERS)


class LinkValidator:
    """Probes each route link one at a time and keeps the live ones."""

    name = "link_validator"

    def __init__(
        self,
        *,
        delay: float | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
        limiter: KeyedRateLimiter | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.delay = max(float(delay if delay is not None else settings.link_check_delay_seconds), 0.0)
        self.timeout = float(timeout if timeout is not None else settings.link_check_timeout_seconds)
        self._http_client = http_client
        self.limiter = limiter or KeyedRateLimiter(
            limit=settings.link_check_max_per_window,
            window_seconds=settings.link_check_window_seconds,
        )
        self._sleep = sleep

    async def _wait_for_budget(self, url: str) -> None:
        host = extract_domain(url)
        while not self.limiter.allow(host):
            wait = max(self.limiter.retry_after(host), 0.05)
            logger.debug(f"Link budget for {host} spent; waiting {wait:.2f}s")
            await self._sleep(wait)

    async def _probe(self, client: httpx.AsyncClient, url: str) -> tuple[bool, int | None]:
        await self._wait_for_budget(url)
        try:
            response = await client.get(url, headers={"User-Agent": USER_AGENT})
        except Exception as exc:
            logger.debug(f"Link fetch failed for {url}: {exc}")
            return False, None

        if not response.is_success:
            return False, response.status_code
        try:
            return classify_page(response.text), response.status_code
        except Exception as exc:
            logger.debug(f"Could not inspect content of {url}: {exc}")
            return False, response.status_code

    async def check(self, candidate: CandidateRoute, client: httpx.AsyncClient) -> tuple[ValidatedRoute, bool]:
        """Return the verdict and whether the network was used."""
        cached = link_cache.load(candidate.url)
        if cached is not None:
            return (
                ValidatedRoute.from_candidate(
                    candidate, valid=cached["valid"], status_code=cached["status_code"]
                ),
                False,
            )

        valid, status_code = await self._probe(client, candidate.url)
        link_cache.save(candidate.url, valid=valid, status_code=status_code)
        return ValidatedRoute.from_candidate(candidate, valid=valid, status_code=status_code), True

    async def validate(self, candidates: list[CandidateRoute]) -> list[ValidatedRoute]:
        """Sequentially check every candidate; only valid routes are returned."""
        if self._http_client is None:
            async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                return await self._validate_all(candidates, client)
        return await self._validate_all(candidates, self._http_client)

    async def _validate_all(
        self, candidates: list[CandidateRoute], client: httpx.AsyncClient
    ) -> list[ValidatedRoute]:
        seen: set[tuple[str, str]] = set()
        valid_routes: list[ValidatedRoute] = []
        invalid_count = 0
        fetched_before = False

        for candidate in candidates:
            if candidate.key in seen:
                logger.debug(f"Skipping duplicate candidate {candidate.name!r}")
                continue
            seen.add(candidate.key)

            if fetched_before and self.delay:
                await self._sleep(self.delay)

            route, used_network = await self.check(candidate, client)
            fetched_before = fetched_before or used_network
            if route.valid:
                valid_routes.append(route)
            else:
                invalid_count += 1
                logger.info(f"Dropping {route.name!r}: dead or invalid link {route.url} ({route.status_code})")

        logger.info(f"Link validation: {len(valid_routes)} valid, {invalid_count} invalid")
        return valid_routes

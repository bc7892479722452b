from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

import httpx


LOGGER = logging.getLogger("downdetector-alerts.provider")

# Region code -> Downdetector site. Some regions run under a localized brand.
SITES_BY_COUNTRY: dict[str, str] = {
    "us": "https://downdetector.com",
    "com": "https://downdetector.com",
    "uk": "https://downdetector.co.uk",
    "gb": "https://downdetector.co.uk",
    "co.uk": "https://downdetector.co.uk",
    "it": "https://downdetector.it",
    "fr": "https://downdetector.fr",
    "es": "https://downdetector.es",
    "pt": "https://downdetector.pt",
    "ie": "https://downdetector.ie",
    "se": "https://downdetector.se",
    "pl": "https://downdetector.pl",
    "ca": "https://downdetector.ca",
    "mx": "https://downdetector.mx",
    "ar": "https://downdetector.com.ar",
    "br": "https://downdetector.com.br",
    "au": "https://downdetector.com.au",
    "in": "https://downdetector.in",
    "jp": "https://downdetector.jp",
    "nl": "https://allestoringen.nl",
    "be": "https://allestoringen.be",
    "de": "https://allestoerungen.de",
    "at": "https://allestoerungen.at",
    "ch": "https://allestoerungen.ch",
}

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/124.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml",
}

# Chart points embedded in the status page script: { x: '2024-01-01T10:00:00+00:00', y: 12 }
_POINT_RE = re.compile(r"\{\s*x:\s*'([^']*)',\s*y:\s*(-?\d+(?:\.\d+)?)\s*\}")


class ProviderError(RuntimeError):
    pass


@dataclass(frozen=True)
class DataPoint:
    timestamp: str
    value: float


@dataclass(frozen=True)
class ProviderData:
    reports: list[DataPoint] = field(default_factory=list)
    baseline: list[DataPoint] = field(default_factory=list)


def site_for_country(country: str) -> str:
    key = str(country or "").strip().lower()
    site = SITES_BY_COUNTRY.get(key)
    if site is None:
        raise ProviderError(f"Unsupported country {country!r}")
    return site


def status_page_url(slug: str, country: str, *, base_url: str | None = None) -> str:
    site = base_url.rstrip("/") if base_url else site_for_country(country)
    return f"{site}/status/{slug}/"


def parse_status_page(html: str) -> ProviderData:
    """
    Extract the two chart series from a status page.

    The page lists the reports series first and the baseline series second,
    with the same number of points, so the matches are split in half.
    """
    points: list[DataPoint] = []
    for m in _POINT_RE.finditer(html or ""):
        raw = m.group(2)
        value = float(raw) if "." in raw else int(raw)
        points.append(DataPoint(timestamp=m.group(1), value=value))

    if not points:
        raise ProviderError("No chart data found on status page")

    half = len(points) // 2
    if half == 0:
        return ProviderData(reports=points, baseline=[])
    return ProviderData(reports=points[:half], baseline=points[half:])


class DowndetectorClient:
    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        base_url: str | None = None,
        timeout_seconds: float = 20.0,
    ) -> None:
        self._client = client
        self._base_url = base_url
        self._timeout_seconds = timeout_seconds

    async def fetch(self, slug: str, country: str) -> ProviderData:
        url = status_page_url(slug, country, base_url=self._base_url)
        try:
            resp = await self._client.get(
                url,
                headers=DEFAULT_HEADERS,
                follow_redirects=True,
                timeout=self._timeout_seconds,
            )
        except httpx.RequestError as e:
            raise ProviderError(f"http_error: {type(e).__name__}: {e}") from e

        if not resp.is_success:
            raise ProviderError(f"Downdetector returned HTTP {resp.status_code} for {url}")

        data = parse_status_page(resp.text)
        LOGGER.debug(
            "Fetched %s (%s): %d report points, %d baseline points",
            slug,
            country,
            len(data.reports),
            len(data.baseline),
        )
        return data

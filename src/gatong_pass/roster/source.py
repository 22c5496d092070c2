"""Roster source adapter for the published spreadsheet CSV export.

Performs a single HTTP GET per fetch (no retry) and parses the body.

Example:
    from gatong_pass.roster.source import RosterSource

    source = RosterSource(url)
    result = await source.fetch_roster()
    print(len(result.students))
"""

from typing import Optional

import httpx
import structlog

from gatong_pass.errors import FetchError
from gatong_pass.models import RosterParseResult
from gatong_pass.roster.parser import parse_roster

logger = structlog.get_logger()


class RosterSource:
    """Fetches and parses the school roster from a CSV export URL.

    Attributes:
        url: Spreadsheet export URL returning CSV text.
        timeout_seconds: Transport timeout for the GET request.
    """

    DEFAULT_TIMEOUT_SECONDS = 10.0

    def __init__(
        self,
        url: str,
        timeout_seconds: Optional[float] = None,
        exclude_inactive: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the roster source.

        Args:
            url: CSV export URL.
            timeout_seconds: Request timeout (default: 10).
            exclude_inactive: Skip rows with an enrollment status set.
            transport: Optional httpx transport (used by tests).
        """
        self.url = url
        self.timeout_seconds = timeout_seconds or self.DEFAULT_TIMEOUT_SECONDS
        self.exclude_inactive = exclude_inactive
        self._transport = transport

    async def fetch_roster(self) -> RosterParseResult:
        """Download and parse the roster.

        Returns:
            Parsed roster with diagnostics.

        Raises:
            FetchError: On any transport failure or non-2xx response.
        """
        logger.debug("roster_fetch_started", url=self.url)

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                response = await client.get(self.url)
                response.raise_for_status()
                text = response.text
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error("roster_fetch_failed", url=self.url, status_code=status)
            raise FetchError(
                f"Failed to fetch roster: HTTP {status}",
                url=self.url,
                status_code=status,
            ) from e
        except httpx.HTTPError as e:
            logger.error("roster_fetch_failed", url=self.url, error=str(e))
            raise FetchError(f"Failed to fetch roster: {e}", url=self.url) from e

        result = parse_roster(text, exclude_inactive=self.exclude_inactive)

        logger.info(
            "roster_fetched",
            students=len(result.students),
            dropped_rows=result.dropped_rows,
            unparseable=len(result.unparseable),
        )
        return result

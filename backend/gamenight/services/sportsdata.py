"""SportsDataIO play-by-play client: read-only context shown beside prompts."""

import logging
import time
from typing import Any
from urllib.parse import quote

import httpx

from gamenight.errors import FeedUnavailable

logger = logging.getLogger(__name__)

SOURCE_LIVE = 'live'
SOURCE_REPLAY = 'replay'
NBA_PBP_PATH = '/api/v3/nba/pbp/json/playbyplay/{game_id}'


class SportsDataClient:
    """NBA play-by-play fetches against the live or replay host."""

    def __init__(
        self,
        api_key: str,
        live_base_url: str = 'https://api.sportsdata.io',
        replay_base_url: str = 'https://replay.sportsdata.io',
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._api_key = (api_key or '').strip()
        self._base_urls = {SOURCE_LIVE: live_base_url.rstrip('/'), SOURCE_REPLAY: replay_base_url.rstrip('/')}
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config, transport: httpx.BaseTransport | None = None) -> 'SportsDataClient':
        return cls(
            api_key=config.get('SPORTSDATAIO_API_KEY', ''),
            live_base_url=config.get('SPORTSDATAIO_LIVE_BASE_URL', 'https://api.sportsdata.io'),
            replay_base_url=config.get('SPORTSDATAIO_REPLAY_BASE_URL', 'https://replay.sportsdata.io'),
            timeout=float(config.get('SPORTSDATAIO_TIMEOUT_SEC', 10)),
            transport=transport,
        )

    def is_configured(self) -> bool:
        return bool(self._api_key)

    def fetch_nba_play_by_play(self, game_id: str | int, source: str = SOURCE_LIVE) -> dict[str, Any]:
        """Return the feed's ``{'Game': {...}, 'Plays': [...]}`` payload.

        Raises FeedUnavailable for missing credentials, transport errors,
        non-2xx responses and non-JSON bodies.
        """
        if source not in self._base_urls:
            raise FeedUnavailable(f"Unknown feed source: {source}")
        if not self.is_configured():
            raise FeedUnavailable('SPORTSDATAIO_API_KEY is not set')

        url = self._base_urls[source] + NBA_PBP_PATH.format(game_id=quote(str(game_id), safe=''))
        started = time.monotonic()
        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as c:
                r = c.get(url, params={'key': self._api_key})
        except httpx.HTTPError as exc:
            logger.warning(f"[feed-error] source={source} game={game_id} error={exc}")
            raise FeedUnavailable(f"SportsDataIO {source} request failed: {exc}") from exc

        latency_ms = int((time.monotonic() - started) * 1000)
        logger.info(f"[feed] source={source} game={game_id} status={r.status_code} latency_ms={latency_ms}")
        if not r.is_success:
            raise FeedUnavailable(
                f"SportsDataIO {source} request failed: {r.status_code} {r.reason_phrase}\n{r.text[:500]}"
            )
        try:
            return r.json()
        except ValueError as exc:
            raise FeedUnavailable(f"SportsDataIO {source} returned a non-JSON body") from exc

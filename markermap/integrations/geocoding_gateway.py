"""
Geocoding gateway: free-text address → {"lat", "lng"} via Nominatim.

All outbound geocoding calls go through this class. Nominatim's usage
policy allows one request per ~second per application, so every caller in
every worker shares one budget: a ``limits`` moving-window limiter
(1 hit per GEOCODER_MIN_INTERVAL_SECONDS) on the same storage Flask-Limiter
uses (memory:// in development, Redis when REDIS_URL is set). ``hit`` is
atomic on both backends, so concurrent callers cannot both pass.

The limit is soft: a caller waits for the window to reopen, up to
GEOCODER_MAX_WAIT_SECONDS, before giving up with GeocodingError.

Testability: pass a mock ``session`` (and ``sleep``) to GeocodingGateway()
instead of letting it create a real requests.Session.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

import requests
from flask import current_app
from limits import RateLimitItemPerSecond
from limits.storage import storage_from_string
from limits.strategies import MovingWindowRateLimiter

logger = logging.getLogger(__name__)

_RATE_KEY = "nominatim"


class GeocodingError(Exception):
    """Upstream geocoding failure; the message carries the upstream reason.

    Callers should surface this as a 502 / "try again" response.
    """


class GeocodingGateway:
    """Nominatim search API gateway.

    Usage:
        from markermap.integrations.geocoding_gateway import geocoding_gateway
        coords = geocoding_gateway.geocode_address("10 Downing Street, London")
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._session = session
        self._sleep = sleep
        self._clock = clock
        self._limiter: MovingWindowRateLimiter | None = None
        self._limiter_uri: str | None = None

    # ── HTTP session ─────────────────────────────────────────────────────────

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
        return self._session

    # ── Rate limiting ────────────────────────────────────────────────────────

    def _rate_limiter(self) -> MovingWindowRateLimiter:
        uri = current_app.config.get("RATELIMIT_STORAGE_URI", "memory://")
        if self._limiter is None or self._limiter_uri != uri:
            self._limiter = MovingWindowRateLimiter(storage_from_string(uri))
            self._limiter_uri = uri
        return self._limiter

    def _rate_item(self) -> RateLimitItemPerSecond:
        interval = int(current_app.config.get("GEOCODER_MIN_INTERVAL_SECONDS", 2))
        return RateLimitItemPerSecond(1, interval)

    def acquire_slot(self) -> None:
        """Block until this process may call the upstream API.

        Raises:
            GeocodingError: the window did not reopen within the max wait.
        """
        limiter = self._rate_limiter()
        item = self._rate_item()
        max_wait = float(current_app.config.get("GEOCODER_MAX_WAIT_SECONDS", 5))
        deadline = self._clock() + max_wait

        while not limiter.hit(item, _RATE_KEY):
            reset_at = limiter.get_window_stats(item, _RATE_KEY).reset_time
            wait = max(reset_at - self._clock(), 0.05)
            if self._clock() + wait > deadline:
                logger.warning("Geocoding rate limit: window reopens in %.1fs", wait,
                               extra={"event_type": "geocode.rate_limited"})
                raise GeocodingError("Geocoding rate limit reached; please try again shortly.")
            self._sleep(wait)

    # ── Public API ───────────────────────────────────────────────────────────

    def user_agent(self) -> str:
        cfg = current_app.config
        board_url = cfg.get("BOARD_URL", "").rstrip("/")
        return f"{cfg.get('BOARD_TITLE')} Geocoder/{cfg.get('APP_VERSION')} ({board_url}/contact)"

    def geocode_address(self, address: str) -> dict | None:
        """Return {"lat": float, "lng": float}, or None when nothing matched.

        Raises:
            GeocodingError: transport failure, bad upstream response, or rate limit.
        """
        address = (address or "").strip()
        if not address:
            return None

        self.acquire_slot()

        cfg = current_app.config
        try:
            resp = self.session.get(
                cfg["GEOCODER_URL"],
                params={"q": address, "format": "json", "limit": 1, "addressdetails": 0},
                headers={"User-Agent": self.user_agent()},
                timeout=cfg.get("GEOCODER_TIMEOUT", 10),
            )
            resp.raise_for_status()
            results = resp.json()
            if not results:
                logger.info("Geocoding found no match for %r", address[:100],
                            extra={"event_type": "geocode.no_match"})
                return None
            first = results[0]
            return {"lat": float(first["lat"]), "lng": float(first["lon"])}
        except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as exc:
            logger.error("Geocoding failed for %r: %s", address[:100], exc,
                         extra={"event_type": "geocode.failed"})
            raise GeocodingError(f"Geocoding failed: {exc}") from exc


geocoding_gateway = GeocodingGateway()

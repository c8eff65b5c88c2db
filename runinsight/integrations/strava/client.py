from __future__ import annotations

import datetime as dt
import time
from collections.abc import Callable

import httpx
from loguru import logger

from runinsight.config.settings import settings
from runinsight.core.errors import StravaAPIError
from runinsight.integrations.strava.schemas import StravaActivity, StravaLap

STRAVA_BASE_URL = "https://www.strava.com/api/v3"
STRAVA_TOKEN_URL = "https://www.strava.com/oauth/token"

PER_PAGE = 200  # Strava maximum
PAGE_DELAY_SECONDS = 0.1
TOKEN_REFRESH_MARGIN_SECONDS = 60
RATE_LIMIT_WINDOW_SECONDS = 15 * 60


class StravaClient:
    """Strava API client acting as the activity source.

    - Refresh-token flow (refresh one minute before expiry, and once on 401)
    - Paginated list fetches, 200 per page, short pause between pages
    - Rate-limit aware: fails fast instead of sleeping through the window
    """

    def __init__(
        self,
        *,
        client_id: str | None = None,
        client_secret: str | None = None,
        refresh_token: str | None = None,
        access_token: str | None = None,
        page_delay: float = PAGE_DELAY_SECONDS,
        timeout: float = 15.0,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._client_id = client_id if client_id is not None else settings.strava_client_id
        self._client_secret = client_secret if client_secret is not None else settings.strava_client_secret
        self._refresh_token = refresh_token if refresh_token is not None else settings.strava_refresh_token
        self._access_token = access_token if access_token is not None else settings.strava_access_token
        # An injected token has unknown expiry; trust it until a 401 says otherwise
        self._token_expires_at = float("inf") if self._access_token else 0.0
        self._page_delay = page_delay
        self._timeout = timeout
        self._clock = clock
        self._sleep = sleep
        self.rate_limit_remaining: int | None = None
        self.rate_limit_reset: float = 0.0

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._access_token}"}

    def refresh_access_token(self) -> None:
        """Exchange the refresh token for a new access token."""
        if not (self._client_id and self._client_secret and self._refresh_token):
            raise StravaAPIError("Strava credentials are not configured", status_code=401)

        logger.debug("Refreshing Strava access token")
        try:
            resp = httpx.post(
                STRAVA_TOKEN_URL,
                data={
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "refresh_token": self._refresh_token,
                    "grant_type": "refresh_token",
                },
                timeout=10,
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Token refresh failed: {e.response.status_code} - {e.response.text}")
            raise StravaAPIError(
                f"Failed to refresh access token: {e.response.text}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Unexpected error during token refresh: {e}")
            raise StravaAPIError(f"Failed to refresh access token: {e}") from e

        token_data = resp.json()
        self._access_token = token_data["access_token"]
        self._refresh_token = token_data.get("refresh_token") or self._refresh_token
        if "expires_at" in token_data:
            self._token_expires_at = float(token_data["expires_at"])
        else:
            self._token_expires_at = self._clock() + float(token_data.get("expires_in", 0))
        logger.info("Access token refreshed successfully")

    def _ensure_token(self) -> None:
        if not self._access_token or self._clock() >= self._token_expires_at - TOKEN_REFRESH_MARGIN_SECONDS:
            self.refresh_access_token()

    def _update_rate_limits(self, headers: httpx.Headers) -> None:
        limit = headers.get("X-RateLimit-Limit")
        usage = headers.get("X-RateLimit-Usage")
        if not limit or not usage:
            return

        limit_15m, limit_daily = (int(part) for part in limit.split(",")[:2])
        used_15m, used_daily = (int(part) for part in usage.split(",")[:2])
        self.rate_limit_remaining = min(limit_15m - used_15m, limit_daily - used_daily)

        now = self._clock()
        self.rate_limit_reset = now - (now % RATE_LIMIT_WINDOW_SECONDS) + RATE_LIMIT_WINDOW_SECONDS
        logger.debug(f"Updated Strava quota: 15m={used_15m}/{limit_15m}, daily={used_daily}/{limit_daily}")

    def _check_rate_limit(self) -> None:
        if self.rate_limit_remaining is not None and self.rate_limit_remaining <= 0 and self._clock() < self.rate_limit_reset:
            wait_seconds = int(self.rate_limit_reset - self._clock()) + 1
            raise StravaAPIError(
                f"Rate limit exceeded. Please wait {wait_seconds} seconds.",
                status_code=429,
                rate_limited=True,
            )

    def _get(self, path: str, params: dict[str, int | str] | None = None, *, retry_auth: bool = True) -> list | dict:
        self._check_rate_limit()
        self._ensure_token()

        try:
            resp = httpx.get(
                f"{STRAVA_BASE_URL}{path}",
                headers=self._headers(),
                params=params,
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            logger.error(f"Strava request failed: path={path} error={e}")
            raise StravaAPIError(f"Strava API request failed: {e}") from e

        self._update_rate_limits(resp.headers)

        if resp.status_code == 401 and retry_auth:
            logger.warning(f"Strava returned 401 for {path}; refreshing token and retrying once")
            self.refresh_access_token()
            return self._get(path, params, retry_auth=False)
        if resp.status_code == 401:
            raise StravaAPIError("Authentication failed. Please check your credentials.", status_code=401)
        if resp.status_code == 429:
            raise StravaAPIError("Rate limit exceeded.", status_code=429, rate_limited=True)
        if resp.is_error:
            raise StravaAPIError(f"Strava API error: {resp.text}", status_code=resp.status_code)

        return resp.json()

    def _fetch_pages(self, params: dict[str, int | str]) -> list[StravaActivity]:
        activities: list[StravaActivity] = []
        page = 1
        while True:
            payload = self._get("/athlete/activities", {**params, "page": page, "per_page": PER_PAGE})
            if not payload:
                break

            activities.extend(StravaActivity(**raw, raw=raw) for raw in payload)
            logger.info(f"Fetched page {page} ({len(payload)} activities, total: {len(activities)})")
            page += 1
            self._sleep(self._page_delay)

        return activities

    def fetch_all_activities(self) -> list[StravaActivity]:
        """Fetch the athlete's full activity history."""
        logger.info("Fetching all activities from Strava")
        activities = self._fetch_pages({})
        logger.info(f"Finished fetching {len(activities)} total activities")
        return activities

    def fetch_activities_by_date_range(self, start_date: str, end_date: str) -> list[StravaActivity]:
        """Fetch activities between two YYYY-MM-DD dates, both inclusive.

        Strava's ``before`` bound is exclusive, so one day is added to it.
        """
        logger.info(f"Fetching activities from {start_date} to {end_date}")
        start = dt.datetime.strptime(start_date, "%Y-%m-%d").replace(tzinfo=dt.timezone.utc)
        end = dt.datetime.strptime(end_date, "%Y-%m-%d").replace(tzinfo=dt.timezone.utc) + dt.timedelta(days=1)
        activities = self._fetch_pages({"after": int(start.timestamp()), "before": int(end.timestamp())})
        logger.info(f"Finished fetching {len(activities)} activities for date range")
        return activities

    def fetch_activity_laps(self, activity_id: int) -> list[StravaLap]:
        """Fetch the laps recorded for one activity."""
        payload = self._get(f"/activities/{activity_id}/laps")
        return [StravaLap(**raw) for raw in payload or []]

"""
View and download tracking.

A wallpaper's counters live in up to three places: the curated record, the
uploader's copy under `userUploads`, and (for downloads) the rollup counters
under `downloadCounters`. Every hit also appends an event for analytics.
Tracking is best effort: failures are logged, then a narrower fallback runs.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from wallpaper_plus.db import TreeStore
from wallpaper_plus.records import ANONYMOUS_USER, now_iso
from wallpaper_plus.wallpapers import USER_UPLOADS, WALLPAPERS, UploadOperations

logger = logging.getLogger(__name__)

DOWNLOAD_EVENTS = "downloads"
VIEW_EVENTS = "views"
DOWNLOAD_COUNTERS = "downloadCounters"

UNKNOWN_USER_AGENT = "Unknown"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EngagementTracker:
    """Records views and downloads against every copy of a wallpaper."""

    def __init__(self, store: TreeStore, clock: Callable[[], datetime] = _utc_now):
        self.store = store
        self.clock = clock

    def _increment_main(self, wallpaper_id: str, counter: str) -> bool:
        path = f"{WALLPAPERS}/{wallpaper_id}"
        if self.store.get(path) is None:
            return False
        count = self.store.increment(f"{path}/{counter}")
        logger.info("Updated %s count in wallpapers for %s: %d", counter, wallpaper_id, count)
        return True

    def _increment_upload(self, wallpaper_id: str, counter: str) -> bool:
        uid = UploadOperations(self.store).find_upload_owner(wallpaper_id)
        if uid is None:
            return False
        count = self.store.increment(f"{USER_UPLOADS}/{uid}/{wallpaper_id}/{counter}")
        logger.info("Updated %s count in userUploads for %s: %d", counter, wallpaper_id, count)
        return True

    def _record_event(
        self,
        events_root: str,
        date_field: str,
        wallpaper_id: str,
        user_id: Optional[str],
        user_agent: Optional[str],
    ) -> str:
        return self.store.push(
            f"{events_root}/{wallpaper_id}",
            {
                "userId": user_id or ANONYMOUS_USER,
                date_field: now_iso(),
                "userAgent": user_agent or UNKNOWN_USER_AGENT,
                "anonymous": not user_id,
            },
        )

    def _bump_download_counters(self, wallpaper_id: str) -> None:
        now = self.clock()
        base = f"{DOWNLOAD_COUNTERS}/{wallpaper_id}"
        self.store.increment(f"{base}/daily/{now.strftime('%Y-%m-%d')}")
        self.store.increment(f"{base}/monthly/{now.strftime('%Y-%m')}")
        self.store.increment(f"{base}/total")
        self.store.set(f"{base}/lastUpdated", now_iso())

    def track_download(
        self,
        wallpaper_id: str,
        user_id: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> bool:
        try:
            self._increment_main(wallpaper_id, "downloads")
            self._increment_upload(wallpaper_id, "downloads")
            self._record_event(DOWNLOAD_EVENTS, "downloadDate", wallpaper_id, user_id, user_agent)
            self._bump_download_counters(wallpaper_id)
            logger.info("Download tracking completed for wallpaper %s", wallpaper_id)
            return True
        except Exception:
            logger.exception("Error tracking download for %s", wallpaper_id)
            return self.increment_download_count(wallpaper_id, user_agent=user_agent)

    def track_view(
        self,
        wallpaper_id: str,
        user_id: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> bool:
        try:
            self._increment_main(wallpaper_id, "views")
            self._increment_upload(wallpaper_id, "views")
            self._record_event(VIEW_EVENTS, "viewDate", wallpaper_id, user_id, user_agent)
            logger.info("View tracking completed for wallpaper %s", wallpaper_id)
            return True
        except Exception:
            logger.exception("Error tracking view for %s", wallpaper_id)
            return self.increment_view_count(wallpaper_id, user_agent=user_agent)

    def _increment_with_fallbacks(
        self,
        wallpaper_id: str,
        counter: str,
        events_root: str,
        date_field: str,
        user_agent: Optional[str],
    ) -> bool:
        try:
            if self._increment_upload(wallpaper_id, counter):
                return True
        except Exception as e:
            logger.info("Failed to update userUploads %s: %s", counter, e)

        try:
            if self._increment_main(wallpaper_id, counter):
                return True
        except Exception as e:
            logger.info("Failed to update main wallpapers %s: %s", counter, e)

        try:
            self._record_event(events_root, date_field, wallpaper_id, None, user_agent)
            logger.info("At least tracked %s event for %s", counter, wallpaper_id)
            return True
        except Exception as e:
            logger.info("Failed to track %s event: %s", counter, e)
        return False

    def increment_download_count(
        self, wallpaper_id: str, user_agent: Optional[str] = None
    ) -> bool:
        return self._increment_with_fallbacks(
            wallpaper_id, "downloads", DOWNLOAD_EVENTS, "downloadDate", user_agent
        )

    def increment_view_count(self, wallpaper_id: str, user_agent: Optional[str] = None) -> bool:
        return self._increment_with_fallbacks(
            wallpaper_id, "views", VIEW_EVENTS, "viewDate", user_agent
        )

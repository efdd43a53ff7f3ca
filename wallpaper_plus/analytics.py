"""
Raw analytics events: downloads, views, searches and user activity.
"""

from __future__ import annotations

from typing import Optional

from wallpaper_plus.db import TreeStore
from wallpaper_plus.records import ANONYMOUS_USER, now_iso

SEARCH_ANALYTICS = "searchAnalytics"
USER_ACTIVITY = "userActivity"


class AnalyticsOperations:
    def __init__(self, store: TreeStore):
        self.store = store

    def track_download(
        self,
        wallpaper_id: str,
        user_id: str,
        metadata: Optional[dict] = None,
        user_agent: str = "",
    ) -> str:
        return self.store.push(
            f"downloads/{wallpaper_id}",
            {
                "userId": user_id,
                "downloadDate": now_iso(),
                "userAgent": user_agent,
                **(metadata or {}),
            },
        )

    def track_view(
        self,
        wallpaper_id: str,
        user_id: str = ANONYMOUS_USER,
        metadata: Optional[dict] = None,
        user_agent: str = "",
    ) -> str:
        return self.store.push(
            f"views/{wallpaper_id}",
            {
                "userId": user_id,
                "viewDate": now_iso(),
                "userAgent": user_agent,
                **(metadata or {}),
            },
        )

    def track_search(self, query: str, user_id: str, results_count: int) -> str:
        return self.store.push(
            SEARCH_ANALYTICS,
            {
                "query": query,
                "userId": user_id,
                "timestamp": now_iso(),
                "resultsCount": results_count,
            },
        )

    def track_user_activity(
        self, user_id: str, action: str, metadata: Optional[dict] = None
    ) -> str:
        return self.store.push(
            USER_ACTIVITY,
            {
                "userId": user_id,
                "action": action,
                "timestamp": now_iso(),
                "metadata": metadata or {},
            },
        )

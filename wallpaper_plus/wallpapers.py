"""
Wallpaper catalog operations: the curated `wallpapers` collection and the
per-user `userUploads` trees that back the public gallery.
"""

from __future__ import annotations

import logging
from typing import Optional

from wallpaper_plus.db import TreeStore
from wallpaper_plus.records import UploadStatus, now_iso, parse_iso
from wallpaper_plus.search import search_analytics, search_wallpapers

logger = logging.getLogger(__name__)

WALLPAPERS = "wallpapers"
USER_UPLOADS = "userUploads"

RELATED_LIMIT = 8


class WallpaperOperations:
    """Curated wallpapers stored under `wallpapers/{id}`."""

    def __init__(self, store: TreeStore):
        self.store = store

    def get_all_wallpapers(self) -> dict:
        return self.store.get(WALLPAPERS) or {}

    def get_wallpapers_by_category(self, category: str) -> dict:
        return self.store.query_equal(WALLPAPERS, "category", category)

    def get_featured_wallpapers(self) -> dict:
        return self.store.query_equal(WALLPAPERS, "featured", True)

    def get_wallpaper(self, wallpaper_id: str) -> Optional[dict]:
        return self.store.get(f"{WALLPAPERS}/{wallpaper_id}")

    def add_wallpaper(self, wallpaper_data: dict) -> str:
        now = now_iso()
        return self.store.push(
            WALLPAPERS,
            {
                **wallpaper_data,
                "createdAt": now,
                "updatedAt": now,
                "downloads": 0,
                "views": 0,
            },
        )

    def _increment(self, wallpaper_id: str, counter: str) -> None:
        path = f"{WALLPAPERS}/{wallpaper_id}"
        if self.store.get(path) is None:
            return
        self.store.increment(f"{path}/{counter}")
        self.store.update(path, {"updatedAt": now_iso()})

    def increment_download(self, wallpaper_id: str) -> None:
        self._increment(wallpaper_id, "downloads")

    def increment_view(self, wallpaper_id: str) -> None:
        self._increment(wallpaper_id, "views")


class UploadOperations:
    """User submitted wallpapers under `userUploads/{uid}/{id}`."""

    def __init__(self, store: TreeStore):
        self.store = store

    def add_user_upload(self, uid: str, upload_data: dict) -> str:
        try:
            logger.info("Adding user upload for uid %s", uid)
            key = self.store.push(
                f"{USER_UPLOADS}/{uid}",
                {
                    **upload_data,
                    "status": UploadStatus.PENDING.value,
                    "uploadDate": now_iso(),
                    "views": 0,
                    "downloads": 0,
                },
            )
            logger.info("Saved upload %s/%s", uid, key)
            return key
        except Exception:
            logger.exception("Error adding upload for uid %s", uid)
            raise

    def get_user_uploads(self, uid: str) -> dict:
        return self.store.get(f"{USER_UPLOADS}/{uid}") or {}

    def get_user_upload(self, uid: str, upload_id: str) -> Optional[dict]:
        return self.store.get(f"{USER_UPLOADS}/{uid}/{upload_id}")

    def update_upload_status(
        self,
        uid: str,
        upload_id: str,
        status: UploadStatus,
        admin_uid: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        status = UploadStatus(status)
        now = now_iso()
        updates: dict = {"status": status.value, "updatedAt": now}
        if status == UploadStatus.APPROVED:
            updates["approvedAt"] = now
            updates["approvedBy"] = admin_uid
        elif status == UploadStatus.REJECTED:
            updates["rejectionReason"] = reason
        self.store.update(f"{USER_UPLOADS}/{uid}/{upload_id}", updates)

    def delete_user_upload(self, uid: str, upload_id: str) -> None:
        self.store.remove(f"{USER_UPLOADS}/{uid}/{upload_id}")

    def _all_uploads(self) -> dict:
        return self.store.get(USER_UPLOADS) or {}

    def find_upload_owner(self, upload_id: str) -> Optional[str]:
        """First user whose uploads contain `upload_id`."""
        for uid, uploads in self._all_uploads().items():
            if isinstance(uploads, dict) and upload_id in uploads:
                return uid
        return None

    def get_all_approved_wallpapers(self) -> list[dict]:
        """Approved uploads from every user, newest first."""
        try:
            approved = []
            for uid, uploads in self._all_uploads().items():
                if not isinstance(uploads, dict):
                    continue
                for upload_id, upload in uploads.items():
                    if isinstance(upload, dict) and upload.get("status") == UploadStatus.APPROVED.value:
                        approved.append({"id": upload_id, "userId": uid, **upload})
            approved.sort(key=lambda w: -parse_iso(w.get("uploadDate")))
            logger.info("Found %d approved wallpapers", len(approved))
            return approved
        except Exception:
            logger.exception("Error fetching approved wallpapers")
            return []

    def get_approved_wallpapers_by_category(self, category_name: str) -> list[dict]:
        try:
            wanted = category_name.lower()
            matches = [
                w
                for w in self.get_all_approved_wallpapers()
                if isinstance(w.get("category"), str) and w["category"].lower() == wanted
            ]
            logger.info("Found %d wallpapers for category %s", len(matches), category_name)
            return matches
        except Exception:
            logger.exception("Error fetching wallpapers for category %s", category_name)
            return []

    def search_approved_wallpapers(self, query: str) -> list[dict]:
        try:
            if not query.strip():
                return []
            results = search_wallpapers(self.get_all_approved_wallpapers(), query)
            logger.info("Found %d wallpapers for search %r", len(results), query)
            return results
        except Exception:
            logger.exception("Error searching wallpapers for query %r", query)
            return []

    def get_search_analytics(self) -> dict:
        try:
            analytics = search_analytics(self.get_all_approved_wallpapers())
            logger.info(
                "Generated analytics: %d trending tags, %d popular searches",
                len(analytics["trendingTags"]),
                len(analytics["popularSearches"]),
            )
            return analytics
        except Exception:
            logger.exception("Error getting search analytics")
            return {"trendingTags": [], "popularSearches": []}

    def get_wallpaper_by_id(self, wallpaper_id: str) -> Optional[dict]:
        """Look in the curated collection first, then in approved uploads."""
        try:
            wallpaper = self.store.get(f"{WALLPAPERS}/{wallpaper_id}")
            if wallpaper is not None:
                return {"id": wallpaper_id, **wallpaper}
        except Exception as e:
            logger.info("Not found in main wallpapers collection: %s", e)

        try:
            for uid, uploads in self._all_uploads().items():
                upload = uploads.get(wallpaper_id) if isinstance(uploads, dict) else None
                if isinstance(upload, dict) and upload.get("status") == UploadStatus.APPROVED.value:
                    return {"id": wallpaper_id, "userId": uid, **upload}
        except Exception as e:
            logger.info("Error searching userUploads: %s", e)

        logger.info("Wallpaper %s not found in any collection", wallpaper_id)
        return None

    def get_related_wallpapers(
        self, wallpaper_id: str, category: str, limit: int = RELATED_LIMIT
    ) -> list[dict]:
        try:
            related = [
                w
                for w in self.get_approved_wallpapers_by_category(category)
                if w.get("id") != wallpaper_id
            ][:limit]
            logger.info("Found %d related wallpapers in %s", len(related), category)
            return related
        except Exception:
            logger.exception("Error fetching related wallpapers")
            return []

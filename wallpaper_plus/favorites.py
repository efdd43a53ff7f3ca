"""
Per-user favorites and a live mirror of them.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from wallpaper_plus.db import TreeStore, Unsubscribe, object_to_array
from wallpaper_plus.records import now_iso

logger = logging.getLogger(__name__)

FAVORITES = "favorites"


class FavoriteOperations:
    def __init__(self, store: TreeStore):
        self.store = store

    def add_favorite(self, uid: str, wallpaper_id: str, wallpaper_data: dict) -> None:
        # Favorites keep their own copy of the display fields.
        self.store.set(
            f"{FAVORITES}/{uid}/{wallpaper_id}",
            {
                "wallpaperId": wallpaper_id,
                "favoriteDate": now_iso(),
                "title": wallpaper_data.get("title"),
                "imageUrl": wallpaper_data.get("imageUrl"),
                "category": wallpaper_data.get("category"),
                "author": wallpaper_data.get("author"),
            },
        )

    def remove_favorite(self, uid: str, wallpaper_id: str) -> None:
        self.store.remove(f"{FAVORITES}/{uid}/{wallpaper_id}")

    def get_user_favorites(self, uid: str) -> dict:
        return self.store.get(f"{FAVORITES}/{uid}") or {}

    def is_favorite(self, uid: str, wallpaper_id: str) -> bool:
        return self.store.get(f"{FAVORITES}/{uid}/{wallpaper_id}") is not None

    def clear_all_favorites(self, uid: str) -> None:
        self.store.remove(f"{FAVORITES}/{uid}")

    def subscribe_to_favorites(
        self, uid: str, callback: Callable[[dict], None]
    ) -> Unsubscribe:
        return self.store.subscribe(
            f"{FAVORITES}/{uid}", lambda favorites: callback(favorites or {})
        )


class FavoritesMirror:
    """
    Keeps a local list of one user's favorites in sync with the store.

    Mutations go to the store; the local list only changes when the
    subscription reports the new value. Without a user the mirror is empty
    and mutations do nothing.
    """

    def __init__(self, operations: FavoriteOperations, uid: Optional[str]):
        self.operations = operations
        self.uid = uid
        self.favorites: list[dict] = []
        self.loading = True
        self._lock = threading.Lock()
        self._unsubscribe: Optional[Unsubscribe] = None

    def start(self) -> "FavoritesMirror":
        if not self.uid:
            self.loading = False
            return self
        try:
            self._unsubscribe = self.operations.subscribe_to_favorites(
                self.uid, self._on_change
            )
        except Exception:
            logger.warning("Failed to subscribe to favorites, using empty list", exc_info=True)
            with self._lock:
                self.favorites = []
                self.loading = False
        return self

    def _on_change(self, favorites: dict) -> None:
        with self._lock:
            self.favorites = object_to_array(favorites)
            self.loading = False

    def close(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def __enter__(self) -> "FavoritesMirror":
        return self.start()

    def __exit__(self, *exc_info) -> None:
        self.close()

    def is_favorite(self, wallpaper_id: str) -> bool:
        with self._lock:
            return any(favorite.get("id") == wallpaper_id for favorite in self.favorites)

    def add(self, wallpaper: dict) -> None:
        if not self.uid:
            return
        with_defaults = {
            **wallpaper,
            "downloads": wallpaper.get("downloads") or 0,
            "resolution": wallpaper.get("resolution") or "HD",
            "author": wallpaper.get("author") or "Unknown",
            "tags": wallpaper.get("tags") or [],
        }
        try:
            self.operations.add_favorite(self.uid, wallpaper["id"], with_defaults)
        except Exception:
            logger.exception("Error adding to favorites")

    def remove(self, wallpaper_id: str) -> None:
        if not self.uid:
            return
        try:
            self.operations.remove_favorite(self.uid, wallpaper_id)
        except Exception:
            logger.exception("Error removing from favorites")

    def clear(self) -> None:
        if not self.uid:
            return
        try:
            self.operations.clear_all_favorites(self.uid)
        except Exception:
            logger.exception("Error clearing favorites")

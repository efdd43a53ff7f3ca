"""
User profile operations and the profile/password form rules.
"""

from __future__ import annotations

import re
from typing import Callable, Optional

from wallpaper_plus.db import TreeStore, Unsubscribe
from wallpaper_plus.records import now_iso

USERS = "users"

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")
MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6


class UserOperations:
    def __init__(self, store: TreeStore):
        self.store = store

    def create_user(self, uid: str, user_data: dict) -> None:
        now = now_iso()
        self.store.set(
            f"{USERS}/{uid}",
            {
                **user_data,
                "createdAt": now,
                "updatedAt": now,
                "stats": {
                    "wallpapersUploaded": 0,
                    "totalViews": 0,
                    "totalDownloads": 0,
                },
            },
        )

    def get_user(self, uid: str) -> Optional[dict]:
        return self.store.get(f"{USERS}/{uid}")

    def update_user(self, uid: str, updates: dict) -> None:
        self.store.update(f"{USERS}/{uid}", {**updates, "updatedAt": now_iso()})

    def subscribe_to_user(
        self, uid: str, callback: Callable[[Optional[dict]], None]
    ) -> Unsubscribe:
        return self.store.subscribe(f"{USERS}/{uid}", callback)

    def get_profile_stats(self, uid: str, favorites_count: int) -> dict:
        uploads = self.store.get(f"userUploads/{uid}") or {}
        user = self.get_user(uid) or {}
        stats = user.get("stats") if isinstance(user.get("stats"), dict) else {}
        return {
            "wallpapersAdded": len(uploads),
            "favoriteWallpapers": favorites_count,
            "totalViews": user.get("totalViews") or stats.get("totalViews") or 0,
        }


def validate_profile(profile: dict) -> dict[str, str]:
    """Field errors for the profile settings form; empty when valid."""
    errors: dict[str, str] = {}
    username = profile.get("username") or ""
    if not username.strip():
        errors["username"] = "Username is required"
    elif len(username) < MIN_USERNAME_LENGTH:
        errors["username"] = "Username must be at least 3 characters"
    elif not USERNAME_PATTERN.match(username):
        errors["username"] = "Username can only contain letters, numbers, and underscores"

    if not (profile.get("firstName") or "").strip():
        errors["firstName"] = "First name is required"
    if not (profile.get("lastName") or "").strip():
        errors["lastName"] = "Last name is required"
    if not profile.get("gender"):
        errors["gender"] = "Please select a gender"
    return errors


def validate_password_change(
    current_password: str, new_password: str, confirm_password: str
) -> dict[str, str]:
    errors: dict[str, str] = {}
    if not current_password:
        errors["currentPassword"] = "Current password is required"

    if not new_password:
        errors["newPassword"] = "New password is required"
    elif len(new_password) < MIN_PASSWORD_LENGTH:
        errors["newPassword"] = "New password must be at least 6 characters"

    if new_password != confirm_password:
        errors["confirmPassword"] = "Passwords do not match"

    if current_password == new_password:
        errors["newPassword"] = "New password must be different from current password"
    return errors

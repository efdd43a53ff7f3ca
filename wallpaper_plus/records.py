"""
Record types stored in the tree, plus small helpers for their fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from dacite import Config, from_dict

from wallpaper_plus.json_utils import convert_keys

ANONYMOUS_USER = "anonymous"


class UploadStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReportStatus(str, Enum):
    PENDING = "pending"
    REVIEWED = "reviewed"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


def now_iso() -> str:
    """Current UTC time in the same shape as JavaScript's toISOString()."""
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def parse_iso(value: Any) -> float:
    """Epoch seconds for an ISO timestamp; 0.0 when missing or unparseable."""
    if not isinstance(value, str) or not value:
        return 0.0
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return 0.0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def tag_values(tags: Any) -> list[str]:
    """Tags are stored as {index: tag}, as a list, or not at all."""
    if isinstance(tags, dict):
        keys = sorted(
            tags,
            key=lambda k: (0, int(k), "") if str(k).isdigit() else (1, 0, str(k)),
        )
        values = [tags[k] for k in keys]
    elif isinstance(tags, (list, tuple)):
        values = list(tags)
    else:
        return []
    return [tag for tag in values if isinstance(tag, str)]


def tags_from_csv(text: Optional[str]) -> Optional[dict[str, str]]:
    tags = [tag.strip() for tag in (text or "").split(",")]
    tags = [tag for tag in tags if tag]
    if not tags:
        return None
    return {str(index): tag for index, tag in enumerate(tags)}


@dataclass
class Wallpaper:
    """Read view over a wallpaper or upload record."""

    id: Optional[str] = None
    title: Optional[str] = None
    image_url: Optional[str] = None
    category: Optional[str] = None
    author: Optional[str] = None
    tags: Any = None
    views: Optional[int] = 0
    downloads: Optional[int] = 0
    status: Optional[str] = None
    upload_date: Optional[str] = None
    resolution: Optional[str] = None
    user_id: Optional[str] = None

    @classmethod
    def from_tree(cls, data: dict, wallpaper_id: Optional[str] = None) -> "Wallpaper":
        fields = convert_keys(data or {}, "camel_to_snake")
        if wallpaper_id is not None:
            fields["id"] = wallpaper_id
        return from_dict(data_class=cls, data=fields, config=Config(check_types=False))

    @property
    def tag_list(self) -> list[str]:
        return tag_values(self.tags)

    @property
    def view_count(self) -> int:
        return self.views if isinstance(self.views, int) else 0

    @property
    def download_count(self) -> int:
        return self.downloads if isinstance(self.downloads, int) else 0


@dataclass
class NewUpload:
    title: str
    image_url: str
    s3_key: str
    category: str
    author: str
    author_id: str
    tags: Optional[dict[str, str]] = None
    status: UploadStatus = UploadStatus.PENDING
    upload_date: str = field(default_factory=now_iso)

    @classmethod
    def from_form(
        cls,
        *,
        title: str,
        image_url: str,
        s3_key: str,
        category: str,
        tags_csv: Optional[str],
        author_id: str,
        display_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> "NewUpload":
        return cls(
            title=title,
            image_url=image_url,
            s3_key=s3_key,
            category=category,
            tags=tags_from_csv(tags_csv),
            author=display_name or email or "Anonymous",
            author_id=author_id,
        )

    def as_tree(self) -> dict:
        return {
            "title": self.title,
            "imageUrl": self.image_url,
            "s3Key": self.s3_key,
            "category": self.category,
            "tags": self.tags,
            "uploadDate": self.upload_date,
            "views": 0,
            "downloads": 0,
            "status": self.status.value,
            "author": self.author,
            "authorId": self.author_id,
        }


@dataclass
class UserProfile:
    username: str
    email: Optional[str]
    first_name: str = ""
    last_name: str = ""
    gender: str = ""
    photo_url: str = ""

    @classmethod
    def from_display_name(
        cls,
        display_name: Optional[str],
        email: Optional[str],
        photo_url: Optional[str] = None,
    ) -> "UserProfile":
        names = display_name.split(" ") if display_name else ["", ""]
        first_name = names[0] if names else ""
        last_name = names[1] if len(names) > 1 else ""
        return cls(
            username=display_name or (email or "").split("@")[0],
            email=email,
            first_name=first_name,
            last_name=last_name,
            photo_url=photo_url or "",
        )

    def as_tree(self) -> dict:
        return {
            "username": self.username,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "email": self.email,
            "gender": self.gender,
            "photoURL": self.photo_url,
        }


@dataclass
class Report:
    wallpaper_id: str
    reported_by: str
    reason: str
    description: str = ""
    status: ReportStatus = ReportStatus.PENDING
    report_date: str = field(default_factory=now_iso)

    def as_tree(self) -> dict:
        return {
            "wallpaperId": self.wallpaper_id,
            "reportedBy": self.reported_by,
            "reason": self.reason,
            "description": self.description,
            "status": self.status.value,
            "reportDate": self.report_date,
        }

"""
Pydantic schemas for the wallpaper API. JSON bodies use camelCase.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from wallpaper_plus.records import ReportStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Storage pass-throughs validate by hand so missing fields answer 400.
class PresignedUrlRequest(CamelModel):
    file_name: Optional[str] = None
    file_type: Optional[str] = None
    user_id: Optional[str] = None


class PresignedUrlResponse(CamelModel):
    upload_url: str
    key: str
    public_url: str


class DirectUploadResponse(CamelModel):
    url: str
    key: str
    width: int
    height: int
    resolution: str


class DeleteObjectRequest(CamelModel):
    url: Optional[str] = None
    key: Optional[str] = None


class SuccessResponse(CamelModel):
    success: bool = True


class SignupRequest(CamelModel):
    email: str
    password: str
    display_name: Optional[str] = None


class SessionResponse(CamelModel):
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = Field(default=None, alias="photoURL")
    is_admin: bool = False
    profile: Optional[dict] = None


class ProfileUpdate(CamelModel):
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    gender: Optional[str] = None
    photo_url: Optional[str] = Field(default=None, alias="photoURL")


class PasswordChangeRequest(CamelModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None
    confirm_password: Optional[str] = None


class ProfileStats(CamelModel):
    wallpapers_added: int
    favorite_wallpapers: int
    total_views: int


class FavoritePayload(CamelModel):
    """Listing fields copied into the favorite when the wallpaper is not stored."""

    title: Optional[str] = None
    image_url: Optional[str] = None
    category: Optional[str] = None
    author: Optional[str] = None
    resolution: Optional[str] = None
    downloads: Optional[int] = None
    tags: Optional[list[str]] = None


class FavoriteStatus(CamelModel):
    wallpaper_id: str
    is_favorite: bool


class TrackResponse(CamelModel):
    success: bool


class DownloadLinkResponse(CamelModel):
    url: str
    filename: str


class ReportRequest(CamelModel):
    wallpaper_id: str = Field(..., min_length=1)
    reason: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)


class IdResponse(CamelModel):
    id: str


class ModerationRequest(CamelModel):
    status: Literal["approved", "rejected"]
    reason: Optional[str] = None


class ReportReviewRequest(CamelModel):
    status: ReportStatus


class CategoryCreate(CamelModel):
    name: str = Field(..., min_length=1)
    slug: str = Field(..., min_length=1)
    description: str = ""
    thumbnail_url: Optional[str] = None
    color: Optional[str] = None
    featured: bool = False
    order: Optional[int] = None

    def as_tree(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class AdminStatus(CamelModel):
    uid: str
    is_admin: bool

"""
HTTP routes for the public gallery, the signed-in user area and the storage
pass-throughs.
"""

from __future__ import annotations

import logging
from typing import Optional

import requests
from fastapi import APIRouter, Body, Depends, File, Form, Header, HTTPException, Query, Response, UploadFile

from wallpaper_plus.analytics import AnalyticsOperations
from wallpaper_plus.auth import AccountService, AuthClient, AuthUser
from wallpaper_plus.catalog import CategoryOperations
from wallpaper_plus.config import get_settings
from wallpaper_plus.db import TreeStore, object_to_array
from wallpaper_plus.dependencies import (
    get_auth_client,
    get_current_user,
    get_optional_user,
    get_storage_client,
    get_tree_store,
)
from wallpaper_plus.downloads import (
    ImageTooLargeError,
    content_disposition,
    download_filename,
    download_path,
    fetch_image,
)
from wallpaper_plus.errors import NotFoundError, StorageError, ValidationError
from wallpaper_plus.favorites import FavoriteOperations
from wallpaper_plus.moderation import AdminOperations, ReportOperations
from wallpaper_plus.records import ANONYMOUS_USER, NewUpload, parse_iso
from wallpaper_plus.schemas import (
    DeleteObjectRequest,
    DirectUploadResponse,
    DownloadLinkResponse,
    FavoritePayload,
    FavoriteStatus,
    IdResponse,
    PasswordChangeRequest,
    PresignedUrlRequest,
    PresignedUrlResponse,
    ProfileStats,
    ProfileUpdate,
    ReportRequest,
    SessionResponse,
    SignupRequest,
    SuccessResponse,
    TrackResponse,
)
from wallpaper_plus.search import SORT_OPTIONS, sort_wallpapers, to_card
from wallpaper_plus.storage import (
    SUPPORTED_FORMATS,
    StorageClient,
    generate_file_key,
    inspect_image,
    upload_metadata,
    validate_file,
)
from wallpaper_plus.tracking import EngagementTracker
from wallpaper_plus.users import UserOperations, validate_password_change, validate_profile
from wallpaper_plus.wallpapers import UploadOperations, WallpaperOperations

logger = logging.getLogger(__name__)

router = APIRouter()


def _check_sort(sort: str) -> str:
    if sort not in SORT_OPTIONS:
        raise HTTPException(
            status_code=400,
            detail=f"Unknown sort option. Expected one of: {', '.join(SORT_OPTIONS)}",
        )
    return sort


def _require_wallpaper(store: TreeStore, wallpaper_id: str) -> dict:
    wallpaper = UploadOperations(store).get_wallpaper_by_id(wallpaper_id)
    if wallpaper is None:
        raise NotFoundError("Wallpaper not found")
    return wallpaper


# --- Storage pass-throughs ---------------------------------------------------


@router.get("/download")
def download_image(url: Optional[str] = Query(None), filename: Optional[str] = Query(None)):
    """Re-serve a remote image as an attachment so browsers save it."""
    if not url:
        raise HTTPException(status_code=400, detail="Image URL is required")
    try:
        settings = get_settings()
        content = fetch_image(
            url, timeout=settings.download_timeout, max_bytes=settings.max_download_bytes
        )
    except (requests.RequestException, ImageTooLargeError) as e:
        logger.error("Download error for %s: %s", url, e)
        raise HTTPException(status_code=500, detail="Failed to download image") from e
    return Response(
        content=content,
        media_type="application/octet-stream",
        headers={"Content-Disposition": content_disposition(filename)},
    )


@router.post("/upload/presigned-url", response_model=PresignedUrlResponse)
def create_presigned_upload_url(
    payload: PresignedUrlRequest,
    storage: StorageClient = Depends(get_storage_client),
):
    if not payload.file_name or not payload.file_type or not payload.user_id:
        raise HTTPException(
            status_code=400, detail="Missing required fields: fileName, fileType, userId"
        )
    if payload.file_type not in SUPPORTED_FORMATS:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file format. Supported formats: {', '.join(SUPPORTED_FORMATS)}",
        )
    key = generate_file_key(payload.file_name, payload.user_id)
    try:
        upload_url = storage.presign_put(
            key,
            payload.file_type,
            metadata=upload_metadata(payload.file_name, payload.user_id),
            expires_in=get_settings().presign_expires_in,
        )
    except StorageError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        logger.exception("Presigned URL error for %s", key)
        raise HTTPException(status_code=500, detail="Failed to generate upload URL") from e
    return PresignedUrlResponse(upload_url=upload_url, key=key, public_url=storage.public_url(key))


@router.post("/upload/direct", response_model=DirectUploadResponse)
async def direct_upload(
    file: Optional[UploadFile] = File(None),
    user_id: Optional[str] = Form(None, alias="userId"),
    storage: StorageClient = Depends(get_storage_client),
):
    if file is None or not user_id:
        raise HTTPException(status_code=400, detail="Missing required fields: file, userId")

    data = await file.read()
    error = validate_file(file.content_type, len(data), get_settings().max_upload_bytes)
    if error:
        raise HTTPException(status_code=400, detail=error)
    try:
        info = inspect_image(data)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    file_name = file.filename or ""
    key = generate_file_key(file_name, user_id)
    try:
        storage.upload_bytes(key, data, file.content_type, upload_metadata(file_name, user_id))
    except StorageError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        logger.exception("Direct upload error for %s", key)
        raise HTTPException(status_code=500, detail="Upload failed") from e
    return DirectUploadResponse(
        url=storage.public_url(key),
        key=key,
        width=info.width,
        height=info.height,
        resolution=info.resolution,
    )


@router.delete("/upload/delete", response_model=SuccessResponse)
def delete_uploaded_object(
    payload: DeleteObjectRequest,
    storage: StorageClient = Depends(get_storage_client),
):
    if not payload.url and not payload.key:
        raise HTTPException(status_code=400, detail="Either url or key is required")
    key = payload.key or storage.extract_key_from_url(payload.url)
    if not key:
        raise HTTPException(status_code=400, detail="Invalid S3 URL")
    try:
        storage.delete(key)
    except StorageError as e:
        raise HTTPException(status_code=400, detail="Failed to delete file") from e
    return SuccessResponse()


# --- Browsing ----------------------------------------------------------------


@router.get("/wallpapers")
def list_wallpapers(
    sort: str = Query("popular"),
    store: TreeStore = Depends(get_tree_store),
):
    records = UploadOperations(store).get_all_approved_wallpapers()
    return [to_card(record) for record in sort_wallpapers(records, _check_sort(sort))]


@router.get("/wallpapers/featured")
def featured_wallpapers(store: TreeStore = Depends(get_tree_store)):
    featured = object_to_array(WallpaperOperations(store).get_featured_wallpapers())
    return [to_card(record) for record in featured]


@router.get("/wallpapers/{wallpaper_id}")
def get_wallpaper(wallpaper_id: str, store: TreeStore = Depends(get_tree_store)):
    return _require_wallpaper(store, wallpaper_id)


@router.get("/wallpapers/{wallpaper_id}/related")
def related_wallpapers(wallpaper_id: str, store: TreeStore = Depends(get_tree_store)):
    wallpaper = _require_wallpaper(store, wallpaper_id)
    category = wallpaper.get("category")
    if not category:
        return []
    related = UploadOperations(store).get_related_wallpapers(wallpaper_id, category)
    return [to_card(record) for record in related]


@router.post("/wallpapers/{wallpaper_id}/views", response_model=TrackResponse)
def track_view(
    wallpaper_id: str,
    user_agent: Optional[str] = Header(default=None),
    user: Optional[AuthUser] = Depends(get_optional_user),
    store: TreeStore = Depends(get_tree_store),
):
    tracked = EngagementTracker(store).track_view(
        wallpaper_id, user.uid if user else None, user_agent
    )
    return TrackResponse(success=tracked)


@router.post("/wallpapers/{wallpaper_id}/downloads", response_model=TrackResponse)
def track_download(
    wallpaper_id: str,
    user_agent: Optional[str] = Header(default=None),
    user: Optional[AuthUser] = Depends(get_optional_user),
    store: TreeStore = Depends(get_tree_store),
):
    tracked = EngagementTracker(store).track_download(
        wallpaper_id, user.uid if user else None, user_agent
    )
    return TrackResponse(success=tracked)


@router.get("/wallpapers/{wallpaper_id}/download-link", response_model=DownloadLinkResponse)
def download_link(wallpaper_id: str, store: TreeStore = Depends(get_tree_store)):
    wallpaper = _require_wallpaper(store, wallpaper_id)
    if not wallpaper.get("imageUrl"):
        raise NotFoundError("Wallpaper has no image")
    filename = download_filename(wallpaper.get("title") or "wallpaper")
    return DownloadLinkResponse(
        url=download_path(wallpaper["imageUrl"], filename, get_settings().api_prefix),
        filename=filename,
    )


@router.get("/categories")
def list_categories(store: TreeStore = Depends(get_tree_store)):
    return CategoryOperations(store).list_categories()


@router.get("/categories/featured")
def featured_categories(store: TreeStore = Depends(get_tree_store)):
    return object_to_array(CategoryOperations(store).get_featured_categories())


@router.get("/categories/{slug}/wallpapers")
def category_wallpapers(
    slug: str,
    sort: str = Query("popular"),
    store: TreeStore = Depends(get_tree_store),
):
    category = CategoryOperations(store).find_category(slug)
    if category is None:
        raise NotFoundError("Category not found")
    records = UploadOperations(store).get_approved_wallpapers_by_category(category["name"])
    return {
        "category": category,
        "wallpapers": [to_card(record) for record in sort_wallpapers(records, _check_sort(sort))],
    }


# --- Search ------------------------------------------------------------------


@router.get("/search")
def search(
    q: str = Query(""),
    user: Optional[AuthUser] = Depends(get_optional_user),
    store: TreeStore = Depends(get_tree_store),
):
    results = UploadOperations(store).search_approved_wallpapers(q)
    if q.strip():
        try:
            AnalyticsOperations(store).track_search(
                q.strip(), user.uid if user else ANONYMOUS_USER, len(results)
            )
        except Exception:
            logger.warning("Failed to record search analytics", exc_info=True)
    return {"query": q, "total": len(results), "results": [to_card(r) for r in results]}


@router.get("/search/analytics")
def search_analytics(store: TreeStore = Depends(get_tree_store)):
    return UploadOperations(store).get_search_analytics()


@router.get("/settings")
def public_settings(store: TreeStore = Depends(get_tree_store)):
    return AdminOperations(store).get_settings()


# --- Account -----------------------------------------------------------------


def _session(store: TreeStore, user: AuthUser, profile: Optional[dict]) -> SessionResponse:
    return SessionResponse(
        uid=user.uid,
        email=user.email,
        display_name=user.display_name,
        photo_url=user.photo_url,
        is_admin=AdminOperations(store).is_admin(user.uid),
        profile=profile,
    )


@router.post("/auth/signup", response_model=SessionResponse, status_code=201)
def signup(
    payload: SignupRequest,
    store: TreeStore = Depends(get_tree_store),
    auth_client: AuthClient = Depends(get_auth_client),
):
    users = UserOperations(store)
    user = AccountService(auth_client, users).signup(
        payload.email, payload.password, payload.display_name
    )
    return _session(store, user, users.get_user(user.uid))


@router.post("/auth/session", response_model=SessionResponse)
def session(
    user: AuthUser = Depends(get_current_user),
    store: TreeStore = Depends(get_tree_store),
    auth_client: AuthClient = Depends(get_auth_client),
):
    """Called after every sign-in; creates the profile on first use."""
    profile = AccountService(auth_client, UserOperations(store)).ensure_profile(user)
    return _session(store, user, profile)


@router.get("/users/me")
def get_profile(
    user: AuthUser = Depends(get_current_user),
    store: TreeStore = Depends(get_tree_store),
):
    profile = UserOperations(store).get_user(user.uid)
    if profile is None:
        raise NotFoundError("Profile not found")
    return profile


@router.put("/users/me")
def update_profile(
    payload: ProfileUpdate,
    user: AuthUser = Depends(get_current_user),
    store: TreeStore = Depends(get_tree_store),
):
    users = UserOperations(store)
    updates = payload.model_dump(by_alias=True, exclude_none=True)
    errors = validate_profile({**(users.get_user(user.uid) or {}), **updates})
    if errors:
        raise ValidationError("Invalid profile", errors)
    users.update_user(user.uid, updates)
    return users.get_user(user.uid)


@router.post("/users/me/password", response_model=SuccessResponse)
def change_password(
    payload: PasswordChangeRequest,
    user: AuthUser = Depends(get_current_user),
    auth_client: AuthClient = Depends(get_auth_client),
):
    errors = validate_password_change(
        payload.current_password or "",
        payload.new_password or "",
        payload.confirm_password or "",
    )
    if errors:
        raise ValidationError("Invalid password change", errors)
    auth_client.update_password(user.uid, payload.new_password)
    return SuccessResponse()


@router.get("/users/me/stats", response_model=ProfileStats)
def profile_stats(
    user: AuthUser = Depends(get_current_user),
    store: TreeStore = Depends(get_tree_store),
):
    favorites = FavoriteOperations(store).get_user_favorites(user.uid)
    return UserOperations(store).get_profile_stats(user.uid, len(favorites))


# --- Favorites ---------------------------------------------------------------


@router.get("/users/me/favorites")
def list_favorites(
    user: AuthUser = Depends(get_current_user),
    store: TreeStore = Depends(get_tree_store),
):
    favorites = object_to_array(FavoriteOperations(store).get_user_favorites(user.uid))
    return sorted(favorites, key=lambda f: -parse_iso(f.get("favoriteDate")))


@router.get("/users/me/favorites/{wallpaper_id}", response_model=FavoriteStatus)
def check_favorite(
    wallpaper_id: str,
    user: AuthUser = Depends(get_current_user),
    store: TreeStore = Depends(get_tree_store),
):
    return FavoriteStatus(
        wallpaper_id=wallpaper_id,
        is_favorite=FavoriteOperations(store).is_favorite(user.uid, wallpaper_id),
    )


@router.put("/users/me/favorites/{wallpaper_id}", response_model=FavoriteStatus)
def add_favorite(
    wallpaper_id: str,
    payload: Optional[FavoritePayload] = Body(default=None),
    user: AuthUser = Depends(get_current_user),
    store: TreeStore = Depends(get_tree_store),
):
    wallpaper = UploadOperations(store).get_wallpaper_by_id(wallpaper_id)
    if wallpaper is None:
        if payload is None or not payload.image_url:
            raise NotFoundError("Wallpaper not found")
        wallpaper = payload.model_dump(by_alias=True, exclude_none=True)
    FavoriteOperations(store).add_favorite(user.uid, wallpaper_id, wallpaper)
    return FavoriteStatus(wallpaper_id=wallpaper_id, is_favorite=True)


@router.delete("/users/me/favorites/{wallpaper_id}", response_model=FavoriteStatus)
def remove_favorite(
    wallpaper_id: str,
    user: AuthUser = Depends(get_current_user),
    store: TreeStore = Depends(get_tree_store),
):
    FavoriteOperations(store).remove_favorite(user.uid, wallpaper_id)
    return FavoriteStatus(wallpaper_id=wallpaper_id, is_favorite=False)


@router.delete("/users/me/favorites", response_model=SuccessResponse)
def clear_favorites(
    user: AuthUser = Depends(get_current_user),
    store: TreeStore = Depends(get_tree_store),
):
    FavoriteOperations(store).clear_all_favorites(user.uid)
    return SuccessResponse()


# --- Uploads -----------------------------------------------------------------


@router.get("/uploads/mine")
def my_uploads(
    user: AuthUser = Depends(get_current_user),
    store: TreeStore = Depends(get_tree_store),
):
    uploads = object_to_array(UploadOperations(store).get_user_uploads(user.uid))
    return sorted(uploads, key=lambda u: -parse_iso(u.get("uploadDate")))


@router.post("/uploads", response_model=IdResponse, status_code=201)
async def create_upload(
    file: Optional[UploadFile] = File(None),
    title: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    tags: Optional[str] = Form(None),
    user: AuthUser = Depends(get_current_user),
    store: TreeStore = Depends(get_tree_store),
    storage: StorageClient = Depends(get_storage_client),
):
    """Store the image in S3 and queue the wallpaper for moderation."""
    errors = {}
    if file is None:
        errors["file"] = "Please select an image"
    if not (title or "").strip():
        errors["title"] = "Title is required"
    if not (category or "").strip():
        errors["category"] = "Category is required"
    if errors:
        raise ValidationError("Invalid upload", errors)

    data = await file.read()
    error = validate_file(file.content_type, len(data), get_settings().max_upload_bytes)
    if error:
        raise ValidationError(error, {"file": error})
    info = inspect_image(data)

    file_name = file.filename or ""
    key = generate_file_key(file_name, user.uid)
    storage.upload_bytes(key, data, file.content_type, upload_metadata(file_name, user.uid))

    upload = NewUpload.from_form(
        title=title.strip(),
        image_url=storage.public_url(key),
        s3_key=key,
        category=category.strip(),
        tags_csv=tags,
        author_id=user.uid,
        display_name=user.display_name,
        email=user.email,
    )
    try:
        upload_id = UploadOperations(store).add_user_upload(
            user.uid, {**upload.as_tree(), "resolution": info.resolution}
        )
    except Exception:
        try:
            storage.delete(key)
        except StorageError:
            logger.warning("Could not remove orphaned object %s", key)
        raise
    try:
        AnalyticsOperations(store).track_user_activity(
            user.uid, "upload", {"wallpaperId": upload_id}
        )
    except Exception:
        logger.warning("Failed to record upload activity", exc_info=True)
    return IdResponse(id=upload_id)


@router.delete("/uploads/mine/{upload_id}", response_model=SuccessResponse)
def delete_my_upload(
    upload_id: str,
    user: AuthUser = Depends(get_current_user),
    store: TreeStore = Depends(get_tree_store),
    storage: StorageClient = Depends(get_storage_client),
):
    uploads = UploadOperations(store)
    upload = uploads.get_user_upload(user.uid, upload_id)
    if upload is None:
        raise NotFoundError("Upload not found")
    key = upload.get("s3Key") or storage.extract_key_from_url(upload.get("imageUrl") or "")
    if key:
        try:
            storage.delete(key)
        except StorageError:
            logger.warning("Could not delete object %s for upload %s", key, upload_id)
    uploads.delete_user_upload(user.uid, upload_id)
    return SuccessResponse()


# --- Reports -----------------------------------------------------------------


@router.post("/reports", response_model=IdResponse, status_code=201)
def submit_report(
    payload: ReportRequest,
    user: AuthUser = Depends(get_current_user),
    store: TreeStore = Depends(get_tree_store),
):
    _require_wallpaper(store, payload.wallpaper_id)
    report_id = ReportOperations(store).submit_report(
        payload.wallpaper_id, user.uid, payload.reason, payload.description
    )
    return IdResponse(id=report_id)

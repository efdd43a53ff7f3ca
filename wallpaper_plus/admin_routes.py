"""
Admin routes: moderation queue, reports, settings, categories and seeding.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Body, Depends, HTTPException

from wallpaper_plus.auth import AuthUser
from wallpaper_plus.catalog import CategoryOperations
from wallpaper_plus.db import TreeStore, object_to_array
from wallpaper_plus.dependencies import get_current_user, get_tree_store, require_admin
from wallpaper_plus.errors import NotFoundError
from wallpaper_plus.moderation import AdminOperations, ReportOperations
from wallpaper_plus.records import parse_iso
from wallpaper_plus.schemas import (
    AdminStatus,
    CategoryCreate,
    IdResponse,
    ModerationRequest,
    ReportReviewRequest,
)
from wallpaper_plus.seed import clear_database, seed_database
from wallpaper_plus.wallpapers import UploadOperations

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin")


@router.get("/status", response_model=AdminStatus)
def admin_status(
    user: AuthUser = Depends(get_current_user),
    store: TreeStore = Depends(get_tree_store),
):
    return AdminStatus(uid=user.uid, is_admin=AdminOperations(store).is_admin(user.uid))


@router.get("/uploads/pending")
def pending_uploads(
    admin: AuthUser = Depends(require_admin),
    store: TreeStore = Depends(get_tree_store),
):
    pending = [
        {"id": upload_id, "userId": uid, **upload}
        for uid, uploads in AdminOperations(store).get_pending_uploads().items()
        for upload_id, upload in uploads.items()
    ]
    # Oldest first, in review order.
    return sorted(pending, key=lambda u: parse_iso(u.get("uploadDate")))


@router.patch("/uploads/{uid}/{upload_id}")
def moderate_upload(
    uid: str,
    upload_id: str,
    payload: ModerationRequest,
    admin: AuthUser = Depends(require_admin),
    store: TreeStore = Depends(get_tree_store),
):
    uploads = UploadOperations(store)
    if uploads.get_user_upload(uid, upload_id) is None:
        raise NotFoundError("Upload not found")
    uploads.update_upload_status(uid, upload_id, payload.status, admin.uid, payload.reason)
    logger.info("Upload %s/%s marked %s by %s", uid, upload_id, payload.status, admin.uid)
    return {"id": upload_id, "userId": uid, **uploads.get_user_upload(uid, upload_id)}


@router.get("/reports")
def list_reports(
    admin: AuthUser = Depends(require_admin),
    store: TreeStore = Depends(get_tree_store),
):
    reports = object_to_array(ReportOperations(store).get_all_reports())
    return sorted(reports, key=lambda r: -parse_iso(r.get("reportDate")))


@router.patch("/reports/{report_id}")
def review_report(
    report_id: str,
    payload: ReportReviewRequest,
    admin: AuthUser = Depends(require_admin),
    store: TreeStore = Depends(get_tree_store),
):
    reports = ReportOperations(store)
    if reports.get_report(report_id) is None:
        raise NotFoundError("Report not found")
    reports.update_report_status(report_id, payload.status, admin.uid)
    return {"id": report_id, **reports.get_report(report_id)}


@router.get("/settings")
def get_settings_tree(
    admin: AuthUser = Depends(require_admin),
    store: TreeStore = Depends(get_tree_store),
):
    return AdminOperations(store).get_settings()


@router.patch("/settings")
def update_settings_tree(
    updates: dict = Body(...),
    admin: AuthUser = Depends(require_admin),
    store: TreeStore = Depends(get_tree_store),
):
    if not updates:
        raise HTTPException(status_code=400, detail="No settings to update")
    admin_ops = AdminOperations(store)
    admin_ops.update_settings(updates)
    return admin_ops.get_settings()


@router.post("/categories", response_model=IdResponse, status_code=201)
def add_category(
    payload: CategoryCreate,
    admin: AuthUser = Depends(require_admin),
    store: TreeStore = Depends(get_tree_store),
):
    return IdResponse(id=CategoryOperations(store).add_category(payload.as_tree()))


@router.post("/seed")
def seed(
    admin: AuthUser = Depends(require_admin),
    store: TreeStore = Depends(get_tree_store),
):
    return seed_database(store)


@router.delete("/database")
def clear(
    admin: AuthUser = Depends(require_admin),
    store: TreeStore = Depends(get_tree_store),
):
    logger.warning("Database cleared by %s", admin.uid)
    return clear_database(store)

"""
Admin checks, moderation queue, app settings and content reports.
"""

from __future__ import annotations

from typing import Optional

from wallpaper_plus.db import TreeStore
from wallpaper_plus.records import Report, ReportStatus, UploadStatus, now_iso
from wallpaper_plus.wallpapers import USER_UPLOADS

ADMINS = "admins"
SETTINGS = "settings"
REPORTS = "reports"


class AdminOperations:
    def __init__(self, store: TreeStore):
        self.store = store

    def is_admin(self, uid: Optional[str]) -> bool:
        if not uid:
            return False
        return self.store.get(f"{ADMINS}/{uid}") is True

    def get_pending_uploads(self) -> dict:
        """Pending uploads grouped as {uid: {upload_id: upload}}."""
        pending: dict = {}
        for uid, uploads in (self.store.get(USER_UPLOADS) or {}).items():
            if not isinstance(uploads, dict):
                continue
            for upload_id, upload in uploads.items():
                if isinstance(upload, dict) and upload.get("status") == UploadStatus.PENDING.value:
                    pending.setdefault(uid, {})[upload_id] = upload
        return pending

    def get_settings(self) -> dict:
        return self.store.get(SETTINGS) or {}

    def update_settings(self, updates: dict) -> None:
        self.store.update(SETTINGS, updates)


class ReportOperations:
    def __init__(self, store: TreeStore):
        self.store = store

    def submit_report(
        self, wallpaper_id: str, reported_by: str, reason: str, description: str = ""
    ) -> str:
        report = Report(
            wallpaper_id=wallpaper_id,
            reported_by=reported_by,
            reason=reason,
            description=description,
        )
        return self.store.push(REPORTS, report.as_tree())

    def get_all_reports(self) -> dict:
        return self.store.get(REPORTS) or {}

    def get_report(self, report_id: str) -> Optional[dict]:
        return self.store.get(f"{REPORTS}/{report_id}")

    def update_report_status(
        self, report_id: str, status: ReportStatus, reviewed_by: str
    ) -> None:
        self.store.update(
            f"{REPORTS}/{report_id}",
            {
                "status": ReportStatus(status).value,
                "reviewedBy": reviewed_by,
                "reviewDate": now_iso(),
            },
        )

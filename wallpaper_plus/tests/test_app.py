import io
import unittest
from unittest import mock

import requests
from fastapi.testclient import TestClient
from PIL import Image

from wallpaper_plus.app import create_app
from wallpaper_plus.auth import AuthUser, InMemoryAuthClient
from wallpaper_plus.db import InMemoryTreeStore
from wallpaper_plus.dependencies import get_auth_client, get_storage_client, get_tree_store
from wallpaper_plus.downloads import ImageTooLargeError
from wallpaper_plus.errors import StorageError
from wallpaper_plus.storage import InMemoryStorageClient


def png_bytes(width=1920, height=1080):
    buffer = io.BytesIO()
    Image.new("RGB", (width, height)).save(buffer, format="PNG")
    return buffer.getvalue()


class WallpaperApiTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(create_app())
        self.store = get_tree_store()
        if isinstance(self.store, InMemoryTreeStore):
            self.store.reset()
        self.auth = get_auth_client()
        if isinstance(self.auth, InMemoryAuthClient):
            self.auth.reset()
        self.storage = get_storage_client()
        if isinstance(self.storage, InMemoryStorageClient):
            self.storage.stored_objects.clear()

    def sign_in(self, uid, admin=False, **fields):
        token = self.auth.add_user(AuthUser(uid=uid, **fields))
        if admin:
            self.store.set(f"admins/{uid}", True)
        return {"Authorization": f"Bearer {token}"}

    def upload_wallpaper(self, headers, title="Aurora", category="Nature", tags="sky, night"):
        return self.client.post(
            "/api/uploads",
            headers=headers,
            data={"title": title, "category": category, "tags": tags},
            files={"file": ("aurora.png", png_bytes(), "image/png")},
        )

    # Storage pass-throughs

    def test_download_requires_url(self):
        response = self.client.get("/api/download")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Image URL is required")

    def test_download_proxies_bytes(self):
        with mock.patch("wallpaper_plus.routes.fetch_image", return_value=b"jpeg") as fetch:
            response = self.client.get(
                "/api/download", params={"url": "https://img.test/a.jpg", "filename": "a.jpg"}
            )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b"jpeg")
        self.assertEqual(response.headers["content-type"], "application/octet-stream")
        self.assertEqual(response.headers["content-disposition"], 'attachment; filename="a.jpg"')
        self.assertEqual(fetch.call_args.args[0], "https://img.test/a.jpg")

        with mock.patch("wallpaper_plus.routes.fetch_image", return_value=b"jpeg"):
            response = self.client.get("/api/download", params={"url": "https://img.test/a.jpg"})
        self.assertIn('filename="wallpaper.jpg"', response.headers["content-disposition"])

    def test_download_failure(self):
        with mock.patch(
            "wallpaper_plus.routes.fetch_image", side_effect=requests.ConnectionError("down")
        ):
            response = self.client.get("/api/download", params={"url": "https://img.test/a.jpg"})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["detail"], "Failed to download image")

    def test_download_non_ascii_filename(self):
        with mock.patch("wallpaper_plus.routes.fetch_image", return_value=b"jpeg"):
            response = self.client.get(
                "/api/download",
                params={"url": "https://img.test/a.jpg", "filename": "壁纸 \"night\".jpg"},
            )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.headers["content-disposition"],
            "attachment; filename=\"__ _night_.jpg\"; "
            "filename*=UTF-8''%E5%A3%81%E7%BA%B8%20%22night%22.jpg",
        )

    def test_download_too_large(self):
        with mock.patch(
            "wallpaper_plus.routes.fetch_image", side_effect=ImageTooLargeError("too big")
        ):
            response = self.client.get("/api/download", params={"url": "https://img.test/a.jpg"})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["detail"], "Failed to download image")

    def test_presigned_url(self):
        response = self.client.post("/api/upload/presigned-url", json={"fileName": "a.png"})
        self.assertEqual(response.status_code, 400)

        response = self.client.post(
            "/api/upload/presigned-url",
            json={"fileName": "a.gif", "fileType": "image/gif", "userId": "u1"},
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("Unsupported file format", response.json()["detail"])

        response = self.client.post(
            "/api/upload/presigned-url",
            json={"fileName": "a.png", "fileType": "image/png", "userId": "u1"},
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertTrue(payload["key"].startswith("wallpapers/u1/"))
        self.assertIn(payload["key"], payload["uploadUrl"])
        self.assertEqual(
            payload["publicUrl"], f"https://test-bucket.s3.amazonaws.com/{payload['key']}"
        )

    def test_direct_upload(self):
        response = self.client.post(
            "/api/upload/direct",
            data={"userId": "u1"},
            files={"file": ("a.png", png_bytes(), "image/png")},
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["resolution"], "Full HD")
        self.assertEqual((payload["width"], payload["height"]), (1920, 1080))
        self.assertIn(payload["key"], self.storage.stored_objects)
        self.assertEqual(
            self.storage.stored_objects[payload["key"]]["metadata"]["uploadedBy"], "u1"
        )

    def test_direct_upload_rejections(self):
        response = self.client.post(
            "/api/upload/direct", files={"file": ("a.png", png_bytes(), "image/png")}
        )
        self.assertEqual(response.status_code, 400)

        response = self.client.post(
            "/api/upload/direct",
            data={"userId": "u1"},
            files={"file": ("a.gif", b"GIF89a", "image/gif")},
        )
        self.assertEqual(response.status_code, 400)

        response = self.client.post(
            "/api/upload/direct",
            data={"userId": "u1"},
            files={"file": ("a.png", b"not really a png", "image/png")},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "File is not a valid image")

    def test_presigned_url_storage_failure(self):
        with mock.patch.object(
            self.storage, "presign_put", side_effect=StorageError("Failed to generate upload URL: denied")
        ):
            response = self.client.post(
                "/api/upload/presigned-url",
                json={"fileName": "a.png", "fileType": "image/png", "userId": "u1"},
            )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Failed to generate upload URL: denied")

    def test_direct_upload_storage_failure(self):
        with mock.patch.object(
            self.storage, "upload_bytes", side_effect=StorageError("Upload failed: AccessDenied")
        ):
            response = self.client.post(
                "/api/upload/direct",
                data={"userId": "u1"},
                files={"file": ("a.png", png_bytes(), "image/png")},
            )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Upload failed: AccessDenied")

        with mock.patch.object(self.storage, "upload_bytes", side_effect=RuntimeError("boom")):
            response = self.client.post(
                "/api/upload/direct",
                data={"userId": "u1"},
                files={"file": ("a.png", png_bytes(), "image/png")},
            )
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["detail"], "Upload failed")

    def test_delete_object(self):
        self.storage.upload_bytes("wallpapers/u1/a.png", b"x", "image/png")

        response = self.client.request("DELETE", "/api/upload/delete", json={})
        self.assertEqual(response.status_code, 400)

        response = self.client.request(
            "DELETE", "/api/upload/delete", json={"url": "https://elsewhere.test/a.png"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Invalid S3 URL")

        response = self.client.request(
            "DELETE",
            "/api/upload/delete",
            json={"url": "https://test-bucket.s3.amazonaws.com/wallpapers/u1/a.png"},
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"success": True})
        self.assertEqual(self.storage.stored_objects, {})

    # Accounts

    def test_signup_and_session(self):
        response = self.client.post(
            "/api/auth/signup",
            json={"email": "ada@example.com", "password": "secret1", "displayName": "Ada Lovelace"},
        )
        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["profile"]["firstName"], "Ada")
        self.assertFalse(payload["isAdmin"])

        duplicate = self.client.post(
            "/api/auth/signup", json={"email": "ada@example.com", "password": "secret1"}
        )
        self.assertEqual(duplicate.status_code, 400)
        self.assertIn("email", duplicate.json()["errors"])

        self.assertEqual(self.client.post("/api/auth/session").status_code, 401)
        bad = self.client.post("/api/auth/session", headers={"Authorization": "Bearer nope"})
        self.assertEqual(bad.status_code, 401)

        headers = self.sign_in("g1", email="grace@example.com", display_name="Grace Hopper")
        session = self.client.post("/api/auth/session", headers=headers)
        self.assertEqual(session.status_code, 200)
        self.assertEqual(session.json()["profile"]["lastName"], "Hopper")

    def test_profile_update_and_password(self):
        headers = self.sign_in("u1", email="ada@example.com", display_name="Ada Lovelace")
        self.client.post("/api/auth/session", headers=headers)

        invalid = self.client.put("/api/users/me", headers=headers, json={"username": "a!"})
        self.assertEqual(invalid.status_code, 400)
        self.assertIn("username", invalid.json()["errors"])

        valid = self.client.put(
            "/api/users/me",
            headers=headers,
            json={"username": "ada_l", "gender": "female", "photoURL": "https://img/p.png"},
        )
        self.assertEqual(valid.status_code, 200)
        self.assertEqual(valid.json()["username"], "ada_l")
        self.assertEqual(valid.json()["photoURL"], "https://img/p.png")

        mismatch = self.client.post(
            "/api/users/me/password",
            headers=headers,
            json={"currentPassword": "secret1", "newPassword": "secret2", "confirmPassword": "x"},
        )
        self.assertEqual(mismatch.status_code, 400)
        changed = self.client.post(
            "/api/users/me/password",
            headers=headers,
            json={
                "currentPassword": "secret1",
                "newPassword": "secret2",
                "confirmPassword": "secret2",
            },
        )
        self.assertEqual(changed.status_code, 200)
        self.assertEqual(self.auth.passwords["u1"], "secret2")

    # Uploads, moderation and browsing

    def test_upload_moderation_and_browsing(self):
        user = self.sign_in("u1", email="ada@example.com", display_name="Ada")
        admin = self.sign_in("boss", admin=True)

        created = self.upload_wallpaper(user)
        self.assertEqual(created.status_code, 201)
        upload_id = created.json()["id"]

        mine = self.client.get("/api/uploads/mine", headers=user).json()
        self.assertEqual(mine[0]["status"], "pending")
        self.assertEqual(mine[0]["author"], "Ada")
        self.assertEqual(mine[0]["tags"], {"0": "sky", "1": "night"})
        self.assertEqual(mine[0]["resolution"], "Full HD")
        self.assertIn(mine[0]["s3Key"], self.storage.stored_objects)
        self.assertEqual(self.client.get("/api/wallpapers").json(), [])

        self.assertEqual(self.client.get("/api/admin/uploads/pending", headers=user).status_code, 403)
        pending = self.client.get("/api/admin/uploads/pending", headers=admin).json()
        self.assertEqual([p["id"] for p in pending], [upload_id])

        moderated = self.client.patch(
            f"/api/admin/uploads/u1/{upload_id}", headers=admin, json={"status": "approved"}
        )
        self.assertEqual(moderated.status_code, 200)
        self.assertEqual(moderated.json()["approvedBy"], "boss")

        listing = self.client.get("/api/wallpapers", params={"sort": "recent"}).json()
        self.assertEqual([w["id"] for w in listing], [upload_id])
        self.assertEqual(listing[0]["tags"], ["sky", "night"])
        self.assertEqual(self.client.get("/api/wallpapers", params={"sort": "bogus"}).status_code, 400)

        detail = self.client.get(f"/api/wallpapers/{upload_id}").json()
        self.assertEqual(detail["userId"], "u1")
        self.assertEqual(self.client.get("/api/wallpapers/missing").status_code, 404)

        by_category = self.client.get("/api/categories/nature/wallpapers").json()
        self.assertEqual(by_category["category"]["slug"], "nature")
        self.assertEqual([w["id"] for w in by_category["wallpapers"]], [upload_id])
        self.assertEqual(self.client.get("/api/categories/unknown/wallpapers").status_code, 404)

        search = self.client.get("/api/search", params={"q": "night"}).json()
        self.assertEqual(search["total"], 1)
        events = list(self.store.get("searchAnalytics").values())
        self.assertEqual(events[0]["query"], "night")
        self.assertEqual(events[0]["userId"], "anonymous")

        analytics = self.client.get("/api/search/analytics").json()
        self.assertEqual(analytics["popularSearches"][0], "nature")

        link = self.client.get(f"/api/wallpapers/{upload_id}/download-link").json()
        self.assertEqual(link["filename"], "Aurora.jpg")
        self.assertTrue(link["url"].startswith("/api/download?url=https%3A%2F%2Ftest-bucket"))

        deleted = self.client.delete(f"/api/uploads/mine/{upload_id}", headers=user)
        self.assertEqual(deleted.status_code, 200)
        self.assertEqual(self.storage.stored_objects, {})
        self.assertEqual(self.client.get("/api/uploads/mine", headers=user).json(), [])

    def test_upload_validation(self):
        user = self.sign_in("u1")
        response = self.client.post(
            "/api/uploads",
            headers=user,
            data={"title": " "},
            files={"file": ("a.png", png_bytes(), "image/png")},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(set(response.json()["errors"]), {"title", "category"})
        self.assertEqual(self.upload_wallpaper({}).status_code, 401)

    def test_upload_removes_object_when_record_write_fails(self):
        user = self.sign_in("u1")
        with mock.patch(
            "wallpaper_plus.routes.UploadOperations.add_user_upload",
            side_effect=RuntimeError("database down"),
        ):
            with self.assertRaises(RuntimeError):
                self.upload_wallpaper(user)
        self.assertEqual(self.storage.stored_objects, {})

    def test_tracking_routes(self):
        self.store.set("wallpapers/w1", {"title": "Curated", "views": 0, "downloads": 0})
        user = self.sign_in("u1")

        viewed = self.client.post("/api/wallpapers/w1/views", headers={"User-Agent": "pytest"})
        self.assertEqual(viewed.json(), {"success": True})
        downloaded = self.client.post("/api/wallpapers/w1/downloads", headers=user)
        self.assertEqual(downloaded.json(), {"success": True})

        self.assertEqual(self.store.get("wallpapers/w1/views"), 1)
        self.assertEqual(self.store.get("wallpapers/w1/downloads"), 1)
        view_event = list(self.store.get("views/w1").values())[0]
        self.assertEqual(view_event["userAgent"], "pytest")
        download_event = list(self.store.get("downloads/w1").values())[0]
        self.assertEqual(download_event["userId"], "u1")
        self.assertEqual(self.store.get("downloadCounters/w1/total"), 1)

    def test_favorites(self):
        self.store.set("wallpapers/w1", {"title": "Curated", "imageUrl": "https://img/1.jpg"})
        user = self.sign_in("u1")

        added = self.client.put("/api/users/me/favorites/w1", headers=user)
        self.assertEqual(added.json(), {"wallpaperId": "w1", "isFavorite": True})
        self.assertEqual(self.client.put("/api/users/me/favorites/ghost", headers=user).status_code, 404)
        external = self.client.put(
            "/api/users/me/favorites/ext",
            headers=user,
            json={"title": "Elsewhere", "imageUrl": "https://img/2.jpg"},
        )
        self.assertEqual(external.status_code, 200)

        favorites = self.client.get("/api/users/me/favorites", headers=user).json()
        self.assertEqual(sorted(f["id"] for f in favorites), ["ext", "w1"])
        check = self.client.get("/api/users/me/favorites/w1", headers=user).json()
        self.assertTrue(check["isFavorite"])

        stats = self.client.get("/api/users/me/stats", headers=user).json()
        self.assertEqual(stats["favoriteWallpapers"], 2)

        self.client.delete("/api/users/me/favorites/w1", headers=user)
        self.assertFalse(self.client.get("/api/users/me/favorites/w1", headers=user).json()["isFavorite"])
        self.client.delete("/api/users/me/favorites", headers=user)
        self.assertEqual(self.client.get("/api/users/me/favorites", headers=user).json(), [])

    def test_reports_and_admin_tools(self):
        self.store.set("wallpapers/w1", {"title": "Curated"})
        user = self.sign_in("u1")
        admin = self.sign_in("boss", admin=True)

        self.assertFalse(self.client.get("/api/admin/status", headers=user).json()["isAdmin"])
        self.assertTrue(self.client.get("/api/admin/status", headers=admin).json()["isAdmin"])

        missing = self.client.post("/api/reports", headers=user, json={"wallpaperId": "nope", "reason": "spam"})
        self.assertEqual(missing.status_code, 404)
        report = self.client.post("/api/reports", headers=user, json={"wallpaperId": "w1", "reason": "spam"})
        self.assertEqual(report.status_code, 201)
        report_id = report.json()["id"]

        self.assertEqual(self.client.get("/api/admin/reports", headers=user).status_code, 403)
        reviewed = self.client.patch(
            f"/api/admin/reports/{report_id}", headers=admin, json={"status": "dismissed"}
        )
        self.assertEqual(reviewed.json()["status"], "dismissed")
        self.assertEqual(reviewed.json()["reviewedBy"], "boss")

        settings = self.client.patch("/api/admin/settings", headers=admin, json={"maintenanceMode": True})
        self.assertEqual(settings.json(), {"maintenanceMode": True})
        self.assertEqual(self.client.get("/api/settings").json(), {"maintenanceMode": True})

        category = self.client.post(
            "/api/admin/categories", headers=admin, json={"name": "Retro", "slug": "retro", "featured": True}
        )
        self.assertEqual(category.status_code, 201)
        featured = self.client.get("/api/categories/featured").json()
        self.assertEqual([c["slug"] for c in featured], ["retro"])

        seeded = self.client.post("/api/admin/seed", headers=admin).json()
        self.assertTrue(seeded["success"])
        self.assertTrue(self.client.get("/api/wallpapers/featured").json())
        self.assertTrue(self.client.get("/api/categories").json())


if __name__ == "__main__":
    unittest.main()

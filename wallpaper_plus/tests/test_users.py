import unittest
from unittest import mock

from wallpaper_plus.auth import AccountService, AuthUser, InMemoryAuthClient
from wallpaper_plus.db import InMemoryTreeStore
from wallpaper_plus.errors import AuthenticationError, ValidationError
from wallpaper_plus.users import UserOperations, validate_password_change, validate_profile


class UserOperationsTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryTreeStore()
        self.users = UserOperations(self.store)

    def test_create_user_adds_timestamps_and_stats(self):
        self.users.create_user("u1", {"username": "ada"})
        profile = self.users.get_user("u1")
        self.assertEqual(profile["username"], "ada")
        self.assertEqual(profile["createdAt"], profile["updatedAt"])
        self.assertEqual(
            profile["stats"],
            {"wallpapersUploaded": 0, "totalViews": 0, "totalDownloads": 0},
        )

    def test_update_user_stamps_updated_at(self):
        self.store.set("users/u1", {"username": "ada", "updatedAt": "2020-01-01T00:00:00.000Z"})
        self.users.update_user("u1", {"firstName": "Ada"})
        profile = self.users.get_user("u1")
        self.assertEqual(profile["firstName"], "Ada")
        self.assertNotEqual(profile["updatedAt"], "2020-01-01T00:00:00.000Z")

    def test_profile_stats(self):
        self.store.set("users/u1", {"username": "ada", "stats": {"totalViews": 42}})
        self.store.set("userUploads/u1", {"a": {"title": "x"}, "b": {"title": "y"}})
        self.assertEqual(
            self.users.get_profile_stats("u1", favorites_count=3),
            {"wallpapersAdded": 2, "favoriteWallpapers": 3, "totalViews": 42},
        )

    def test_subscribe_to_user(self):
        seen = []
        unsubscribe = self.users.subscribe_to_user("u1", seen.append)
        self.users.create_user("u1", {"username": "ada"})
        unsubscribe()
        self.assertIsNone(seen[0])
        self.assertEqual(seen[-1]["username"], "ada")


class ValidationTests(unittest.TestCase):
    def test_valid_profile(self):
        profile = {"username": "ada_99", "firstName": "Ada", "lastName": "L", "gender": "female"}
        self.assertEqual(validate_profile(profile), {})

    def test_profile_errors(self):
        errors = validate_profile({"username": "ad"})
        self.assertEqual(errors["username"], "Username must be at least 3 characters")
        self.assertEqual(
            set(errors), {"username", "firstName", "lastName", "gender"}
        )
        self.assertIn(
            "letters, numbers, and underscores",
            validate_profile({"username": "ada lovelace"})["username"],
        )
        self.assertEqual(validate_profile({"username": "  "})["username"], "Username is required")

    def test_password_change(self):
        self.assertEqual(validate_password_change("old-pass", "new-pass", "new-pass"), {})
        errors = validate_password_change("", "abc", "abd")
        self.assertEqual(errors["currentPassword"], "Current password is required")
        self.assertEqual(errors["newPassword"], "New password must be at least 6 characters")
        self.assertEqual(errors["confirmPassword"], "Passwords do not match")
        same = validate_password_change("secret1", "secret1", "secret1")
        self.assertEqual(
            same["newPassword"], "New password must be different from current password"
        )


class AccountServiceTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryTreeStore()
        self.auth = InMemoryAuthClient()
        self.users = UserOperations(self.store)
        self.accounts = AccountService(self.auth, self.users)

    def test_signup_creates_profile(self):
        user = self.accounts.signup("ada@example.com", "secret1", "Ada Lovelace")
        profile = self.users.get_user(user.uid)
        self.assertEqual(profile["username"], "Ada Lovelace")
        self.assertEqual(profile["firstName"], "Ada")
        self.assertEqual(profile["lastName"], "Lovelace")
        self.assertEqual(profile["email"], "ada@example.com")

    def test_signup_without_display_name_uses_email(self):
        user = self.accounts.signup("grace@example.com", "secret1")
        self.assertEqual(self.users.get_user(user.uid)["username"], "grace")

    def test_signup_rejects_duplicates_and_weak_passwords(self):
        self.accounts.signup("ada@example.com", "secret1")
        with self.assertRaises(ValidationError):
            self.accounts.signup("ada@example.com", "secret2")
        with self.assertRaises(ValidationError):
            self.accounts.signup("new@example.com", "123")

    def test_profile_failure_does_not_fail_signup(self):
        with mock.patch.object(self.users, "create_user", side_effect=RuntimeError("down")):
            with self.assertLogs("wallpaper_plus.auth", level="WARNING"):
                user = self.accounts.signup("ada@example.com", "secret1")
        self.assertIn(user.uid, self.auth.users)
        self.assertIsNone(self.users.get_user(user.uid))

    def test_ensure_profile_only_creates_once(self):
        user = AuthUser(uid="g1", email="g@example.com", display_name="Grace Hopper")
        profile = self.accounts.ensure_profile(user)
        self.assertEqual(profile["lastName"], "Hopper")
        self.users.update_user("g1", {"username": "grace"})
        self.assertEqual(self.accounts.ensure_profile(user)["username"], "grace")

    def test_tokens(self):
        token = self.auth.add_user(AuthUser(uid="u1", email="a@b.c"))
        self.assertEqual(self.auth.verify_id_token(token).uid, "u1")
        with self.assertRaises(AuthenticationError):
            self.auth.verify_id_token("forged")


if __name__ == "__main__":
    unittest.main()

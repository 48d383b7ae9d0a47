"""Tests for the signup and login flows."""

from __future__ import annotations

import threading
import unittest
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import Optional
from unittest import mock

from modemode.database import CredentialStore, InMemoryCredentialStore, SQLiteCredentialStore
from modemode.errors import (
    EmailTaken,
    InvalidCredentials,
    InvalidToken,
    MissingFields,
    PasswordTooLong,
    StorageUnavailable,
)
from modemode.models import User
from modemode.passwords import PasswordHasher
from modemode.service import AuthService
from modemode.tokens import TokenIssuer


class _UnavailableStore(CredentialStore):
    def create_user(self, email: str, name: str, password_hash: str) -> User:
        raise StorageUnavailable()

    def find_by_email(self, email: str) -> Optional[User]:
        raise StorageUnavailable()

    def get_user(self, user_id: int) -> Optional[User]:
        raise StorageUnavailable()

    def list_users(self):
        raise StorageUnavailable()


class _RacingStore(InMemoryCredentialStore):
    """Reports every email as free so signup must rely on the insert."""

    def find_by_email(self, email: str) -> Optional[User]:
        return None


def _service(store: CredentialStore) -> AuthService:
    return AuthService(store, PasswordHasher(rounds=4), TokenIssuer("tests-token-secret"))


class AuthServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = InMemoryCredentialStore()
        self.service = _service(self.store)

    def test_signup_then_login_round_trip(self) -> None:
        signup = self.service.signup("A", "a@x.com", "Secret123!")
        self.assertEqual(signup.summary(), {"name": "A", "email": "a@x.com"})
        self.assertTrue(signup.token)

        login = self.service.login("a@x.com", "Secret123!")
        self.assertEqual(login.summary(), {"name": "A", "email": "a@x.com"})
        self.assertEqual(login.user.id, signup.user.id)

        claims = self.service.authenticate(login.token)
        self.assertEqual(claims.user_id, signup.user.id)
        self.assertEqual(claims.email, "a@x.com")
        self.assertEqual(claims.display_name, "A")

    def test_signup_never_stores_plaintext(self) -> None:
        self.service.signup("A", "a@x.com", "Secret123!")
        stored = self.store.find_by_email("a@x.com")
        self.assertIsNotNone(stored)
        self.assertNotIn("Secret123!", stored.password_hash)

    def test_second_signup_with_same_email_is_rejected(self) -> None:
        self.service.signup("A", "a@x.com", "Secret123!")

        with self.assertRaises(EmailTaken):
            self.service.signup("B", "a@x.com", "Other456!")
        self.assertEqual(self.store.count_users(), 1)

    def test_missing_fields(self) -> None:
        cases = [
            ("", "a@x.com", "Secret123!"),
            ("A", "", "Secret123!"),
            ("A", "a@x.com", ""),
            ("   ", "a@x.com", "Secret123!"),
        ]
        for name, email, password in cases:
            with self.subTest(name=name, email=email, password=password):
                with self.assertRaises(MissingFields):
                    self.service.signup(name, email, password)
        self.assertEqual(self.store.count_users(), 0)

        with self.assertRaises(MissingFields):
            self.service.login("", "Secret123!")
        with self.assertRaises(MissingFields):
            self.service.login("a@x.com", "")

    def test_wrong_password_and_unknown_email_are_indistinguishable(self) -> None:
        self.service.signup("A", "a@x.com", "Secret123!")

        with self.assertRaises(InvalidCredentials) as wrong_password:
            self.service.login("a@x.com", "not-the-password")
        with self.assertRaises(InvalidCredentials) as unknown_email:
            self.service.login("nobody@x.com", "Secret123!")

        self.assertIs(type(wrong_password.exception), type(unknown_email.exception))
        self.assertEqual(wrong_password.exception.kind, unknown_email.exception.kind)
        self.assertEqual(wrong_password.exception.message, unknown_email.exception.message)

    def test_unknown_email_costs_a_password_check(self) -> None:
        self.service.signup("A", "a@x.com", "Secret123!")
        hasher = self.service._hasher

        with mock.patch.object(hasher, "dummy_verify", wraps=hasher.dummy_verify) as dummy, \
                mock.patch.object(hasher, "verify", wraps=hasher.verify) as verify:
            with self.assertRaises(InvalidCredentials):
                self.service.login("nobody@x.com", "Secret123!")
            self.assertEqual(dummy.call_count, 1)

            with self.assertRaises(InvalidCredentials):
                self.service.login("a@x.com", "not-the-password")
            self.assertEqual(verify.call_count, 1)
            self.assertEqual(dummy.call_count, 1)

    def test_overlong_password_is_rejected_at_signup(self) -> None:
        with self.assertRaises(PasswordTooLong):
            self.service.signup("B", "b@x.com", "p" * 72 + "-original")
        self.assertEqual(self.store.count_users(), 0)

    def test_password_sharing_72_byte_prefix_cannot_log_in(self) -> None:
        prefix = "p" * 72
        self.service.signup("B", "b@x.com", prefix)

        with self.assertRaises(InvalidCredentials):
            self.service.login("b@x.com", prefix + "-attacker")
        self.assertEqual(self.service.login("b@x.com", prefix).user.email, "b@x.com")

    def test_login_is_case_sensitive_on_email(self) -> None:
        self.service.signup("A", "a@x.com", "Secret123!")
        with self.assertRaises(InvalidCredentials):
            self.service.login("A@X.COM", "Secret123!")

    def test_duplicate_detected_at_insert_maps_to_email_taken(self) -> None:
        service = _service(_RacingStore())
        service.signup("A", "a@x.com", "Secret123!")

        with self.assertRaises(EmailTaken):
            service.signup("B", "a@x.com", "Secret123!")

    def test_storage_failures_propagate(self) -> None:
        service = _service(_UnavailableStore())

        with self.assertRaises(StorageUnavailable):
            service.signup("A", "a@x.com", "Secret123!")
        with self.assertRaises(StorageUnavailable):
            service.login("a@x.com", "Secret123!")

    def test_authenticate_rejects_garbage(self) -> None:
        with self.assertRaises(InvalidToken):
            self.service.authenticate("not-a-token")


class ConcurrentSignupTests(unittest.TestCase):
    attempts = 12

    def _race(self, store: CredentialStore) -> None:
        service = _service(store)
        barrier = threading.Barrier(self.attempts)

        def attempt(index: int) -> str:
            barrier.wait()
            try:
                service.signup(f"Racer {index}", "race@x.com", "Secret123!")
            except EmailTaken:
                return "taken"
            return "ok"

        with ThreadPoolExecutor(max_workers=self.attempts) as pool:
            outcomes = list(pool.map(attempt, range(self.attempts)))

        self.assertEqual(outcomes.count("ok"), 1)
        self.assertEqual(outcomes.count("taken"), self.attempts - 1)
        self.assertEqual(store.count_users(), 1)

    def test_in_memory_store_admits_exactly_one(self) -> None:
        self._race(InMemoryCredentialStore())

    def test_racing_lookups_still_admit_exactly_one(self) -> None:
        self._race(_RacingStore())

    def test_sqlite_store_admits_exactly_one(self) -> None:
        with TemporaryDirectory() as tempdir:
            store = SQLiteCredentialStore(Path(tempdir) / "modemode.sqlite3")
            store.initialize()
            self._race(store)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()

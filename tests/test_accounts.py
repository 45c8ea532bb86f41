"""Unit tests for credential handling."""
import string

import mongomock
import pytest
from fastapi import HTTPException

from accounts import (
    current_otp,
    ensure_unique_admin,
    generate_random_password,
    hash_password,
    new_otp_secret,
    permissions_for_role,
    public_account,
    unique_username,
    verify_otp,
    verify_password,
)
from database import ADMIN


@pytest.fixture
def admin_db():
    db = mongomock.MongoClient()["accounts_test"]
    db[ADMIN].insert_one({"username": "boarding_happy_paws", "email": "owner@happypaws.com"})
    return db


def test_hash_and_verify():
    hashed = hash_password("s3cret!")
    assert hashed != "s3cret!"
    assert verify_password("s3cret!", {"password_hash": hashed}) == (True, False)
    assert verify_password("wrong", {"password_hash": hashed}) == (False, False)


def test_legacy_plaintext_flagged_for_upgrade():
    """Accounts stored before hashing still log in once and get re-hashed."""
    assert verify_password("admin123", {"password": "admin123"}) == (True, True)
    assert verify_password("nope", {"password": "admin123"})[0] is False


def test_account_without_credentials_never_matches():
    assert verify_password("anything", {}) == (False, False)


def test_random_password_has_every_character_class():
    pw = generate_random_password(12)
    assert len(pw) == 12
    assert any(c in string.ascii_uppercase for c in pw)
    assert any(c in string.ascii_lowercase for c in pw)
    assert any(c in string.digits for c in pw)
    assert any(not c.isalnum() for c in pw)


def test_predefined_role_permissions_override_request():
    perms = permissions_for_role("editor", {"can_manage_users": True})
    assert perms["can_manage_users"] is False
    assert perms["can_edit_contacts"] is True


def test_custom_role_keeps_requested_permissions():
    perms = permissions_for_role("receptionist", {"can_manage_messages": True})
    assert perms == {
        "can_edit_contacts": False,
        "can_manage_messages": True,
        "can_manage_users": False,
        "can_edit_profile": False,
    }


def test_public_account_strips_secrets():
    doc = {"_id": "abc", "username": "x", "password": "p", "password_hash": "h", "otp_secret": "s"}
    assert public_account(doc) == {"id": "abc", "username": "x"}


class TestAdminUniqueness:
    def test_duplicate_username(self, admin_db):
        with pytest.raises(HTTPException) as exc:
            ensure_unique_admin(admin_db, "boarding_happy_paws", "new@example.com")
        assert exc.value.status_code == 409
        assert exc.value.detail == "Username already exists"

    def test_duplicate_email(self, admin_db):
        with pytest.raises(HTTPException) as exc:
            ensure_unique_admin(admin_db, "fresh", "owner@happypaws.com")
        assert exc.value.detail == "Email already exists"

    def test_own_record_is_excluded(self, admin_db):
        own_id = str(admin_db[ADMIN].find_one()["_id"])
        ensure_unique_admin(admin_db, "boarding_happy_paws", "owner@happypaws.com", exclude_id=own_id)

    def test_unique_username_appends_counter(self, admin_db):
        assert unique_username(admin_db, "boarding_happy_paws") == "boarding_happy_paws_2"
        assert unique_username(admin_db, "boarding_other") == "boarding_other"


def test_otp_round_trip():
    secret = new_otp_secret()
    assert verify_otp(secret, current_otp(secret))
    assert not verify_otp(secret, "")
    assert not verify_otp(None, "123456")

"""
Credential handling and admin account rules
"""

import hmac
import logging
import secrets
import string
from typing import Any, Dict, Optional, Tuple

import bcrypt
import pyotp
from fastapi import HTTPException
from pymongo.database import Database

from config import BCRYPT_ROUNDS, OTP_INTERVAL_SECONDS
from database import ADMIN, USERS, serialize

logger = logging.getLogger(__name__)

PREDEFINED_ROLES = (
    "superadmin",
    "admin",
    "editor",
    "doctor",
    "boarding_admin",
    "grooming_admin",
    "assistant",
    "moderator",
)

# Roles missing here keep whatever permissions the caller supplied
ROLE_PERMISSIONS: Dict[str, Dict[str, bool]] = {
    "superadmin": {"can_edit_contacts": True, "can_manage_messages": True, "can_manage_users": True, "can_edit_profile": True},
    "admin": {"can_edit_contacts": True, "can_manage_messages": True, "can_manage_users": False, "can_edit_profile": True},
    "editor": {"can_edit_contacts": True, "can_manage_messages": False, "can_manage_users": False, "can_edit_profile": False},
    "doctor": {"can_edit_contacts": False, "can_manage_messages": True, "can_manage_users": False, "can_edit_profile": True},
    "boarding_admin": {"can_edit_contacts": False, "can_manage_messages": True, "can_manage_users": False, "can_edit_profile": True},
    "grooming_admin": {"can_edit_contacts": False, "can_manage_messages": True, "can_manage_users": False, "can_edit_profile": True},
}

SECRET_FIELDS = ("password", "password_hash", "otp_secret")


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode()


def is_password_hash(value: str) -> bool:
    return value.startswith(("$2a$", "$2b$", "$2y$"))


def verify_password(password: str, stored: Dict[str, Any]) -> Tuple[bool, bool]:
    """
    Check a password against an account document.

    Returns (matches, needs_upgrade). Accounts created before hashing keep a
    plaintext `password` field; those match by constant-time comparison and
    are flagged for re-hashing.
    """
    password_hash = stored.get("password_hash")
    if password_hash and is_password_hash(password_hash):
        try:
            return bcrypt.checkpw(password.encode(), password_hash.encode()), False
        except ValueError as e:
            logger.error(f"Password verification error: {e}")
            return False, False
    legacy = stored.get("password")
    if legacy:
        return hmac.compare_digest(password.encode(), legacy.encode()), True
    return False, False


def upgrade_password(db: Database, collection_name: str, doc: Dict[str, Any], password: str) -> None:
    db[collection_name].update_one(
        {"_id": doc["_id"]},
        {"$set": {"password_hash": hash_password(password)}, "$unset": {"password": ""}},
    )
    logger.info(f"Upgraded legacy plaintext password for {collection_name} record {doc['_id']}")


def generate_random_password(length: int = 12) -> str:
    """Random password with at least one upper, lower, digit and symbol character."""
    length = max(8, length)
    upper, lower, digits = string.ascii_uppercase, string.ascii_lowercase, string.digits
    symbols = "!@#$%^&*()-_=+[]{}|;:,.<>?"
    chars = [secrets.choice(upper), secrets.choice(lower), secrets.choice(digits), secrets.choice(symbols)]
    pool = upper + lower + digits + symbols
    chars += [secrets.choice(pool) for _ in range(length - 4)]
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


def permissions_for_role(role: str, requested: Optional[Dict[str, bool]] = None) -> Dict[str, bool]:
    if role in ROLE_PERMISSIONS:
        return dict(ROLE_PERMISSIONS[role])
    base = {"can_edit_contacts": False, "can_manage_messages": False, "can_manage_users": False, "can_edit_profile": False}
    base.update(requested or {})
    return base


def ensure_unique_admin(
    db: Database, username: Optional[str], email: Optional[str], exclude_id: Optional[str] = None
) -> None:
    """Reject a username or email already used by another admin record."""
    for field, value in (("username", username), ("email", email)):
        if not value:
            continue
        for doc in db[ADMIN].find({field: value}, {"_id": 1}):
            if exclude_id is None or str(doc["_id"]) != exclude_id:
                raise HTTPException(status_code=409, detail=f"{field.capitalize()} already exists")


def unique_username(db: Database, base: str) -> str:
    candidate = base
    n = 1
    while db[ADMIN].find_one({"username": candidate}, {"_id": 1}):
        n += 1
        candidate = f"{base}_{n}"
    return candidate


def public_account(doc: Optional[Dict[str, Any]]):
    """Serialized account without credential material."""
    if not doc:
        return doc
    return {k: v for k, v in serialize(doc).items() if k not in SECRET_FIELDS}


# Email one-time codes

def new_otp_secret() -> str:
    return pyotp.random_base32()


def current_otp(secret: str) -> str:
    return pyotp.TOTP(secret, interval=OTP_INTERVAL_SECONDS).now()


def verify_otp(secret: Optional[str], code: str) -> bool:
    if not secret or not code:
        return False
    return pyotp.TOTP(secret, interval=OTP_INTERVAL_SECONDS).verify(code, valid_window=1)


def find_customer(db: Database, email: str) -> Optional[Dict[str, Any]]:
    return db[USERS].find_one({"email": email})

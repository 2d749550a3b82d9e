import logging

import bcrypt

from anonchat.storage.base import StoragePort

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    """Hash password using bcrypt"""
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    """Verify password against hash"""
    return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))


class AdminAuth:
    """Checks admin credentials; the result only ever becomes a session flag."""

    def __init__(self, storage: StoragePort):
        self.storage = storage

    def ensure_default_admin(self, username: str, password: str) -> None:
        if self.storage.get_admin_by_username(username):
            return
        self.storage.create_admin(username, hash_password(password))
        logger.info(f"Seeded admin account {username!r}")

    def authenticate(self, username: str, password: str) -> bool:
        admin = self.storage.get_admin_by_username(username)
        if admin is None:
            # unknown usernames cost one bcrypt check too
            verify_password(password, _DUMMY_HASH)
            return False
        return verify_password(password, admin.password_hash)


_DUMMY_HASH = hash_password("not-a-real-password")

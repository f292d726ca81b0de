"""Login and registration against the user store."""
import hashlib
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from course_tutor.errors import StorageError
from course_tutor.models import ROLES, User
from course_tutor.stores import UserStore

LOGIN_PATTERN = re.compile(r"^[A-Za-z0-9_]{3,20}$")
MIN_PASSWORD_LENGTH = 4
DEFAULT_ADMIN_LOGIN = "admin"
DEFAULT_ADMIN_PASSWORD = "admin"

logger = logging.getLogger(__name__)


class AuthStatus(Enum):
    SUCCESS = "success"
    INVALID_CREDENTIALS = "invalid_credentials"
    USER_NOT_FOUND = "user_not_found"
    STORAGE_ERROR = "storage_error"


class RegisterStatus(Enum):
    SUCCESS = "success"
    USER_EXISTS = "user_exists"
    INVALID_INPUT = "invalid_input"
    STORAGE_ERROR = "storage_error"


@dataclass
class AuthOutcome:
    status: AuthStatus
    user: Optional[User] = None

    @property
    def ok(self) -> bool:
        return self.status is AuthStatus.SUCCESS


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def is_login_valid(login: str) -> bool:
    return bool(LOGIN_PATTERN.match(login))


def is_password_valid(password: str) -> bool:
    return len(password) >= MIN_PASSWORD_LENGTH


class Authenticator:
    def __init__(self, users: UserStore):
        self.users = users

    def authenticate(self, login: str, password: str) -> AuthOutcome:
        login = login.strip()
        if not login or not password:
            return AuthOutcome(AuthStatus.INVALID_CREDENTIALS)
        try:
            stored_hash = self.users.password_hash_for(login)
            if stored_hash is None:
                logger.info("Login failed, unknown user: %s", login)
                return AuthOutcome(AuthStatus.USER_NOT_FOUND)
            if hash_password(password) != stored_hash:
                logger.info("Login failed, wrong password for: %s", login)
                return AuthOutcome(AuthStatus.INVALID_CREDENTIALS)
            user = self.users.find_by_login(login)
        except StorageError:
            return AuthOutcome(AuthStatus.STORAGE_ERROR)
        logger.info("User authenticated: %s (%s)", user.login, user.role)
        return AuthOutcome(AuthStatus.SUCCESS, user)

    def register(self, login: str, password: str, full_name: str, role: str = "student") -> RegisterStatus:
        if not login.strip() or not password or not full_name.strip():
            logger.warning("Registration attempt with empty fields")
            return RegisterStatus.INVALID_INPUT
        if not is_login_valid(login.strip()):
            logger.warning("Registration attempt with invalid login: %s", login)
            return RegisterStatus.INVALID_INPUT
        if not is_password_valid(password):
            logger.warning("Registration attempt with weak password for: %s", login)
            return RegisterStatus.INVALID_INPUT
        if role not in ROLES:
            return RegisterStatus.INVALID_INPUT
        try:
            if self.users.exists(login):
                return RegisterStatus.USER_EXISTS
            self.users.create(login, hash_password(password), full_name, role)
        except StorageError:
            return RegisterStatus.STORAGE_ERROR
        return RegisterStatus.SUCCESS

    def check_admin_password(self, password: str) -> bool:
        outcome = self.authenticate(DEFAULT_ADMIN_LOGIN, password)
        return outcome.ok and outcome.user.is_admin()


def seed_admin(users: UserStore) -> bool:
    """Create the default admin account when the database has none."""
    if users.count_admins() > 0:
        return False
    users.create(DEFAULT_ADMIN_LOGIN, hash_password(DEFAULT_ADMIN_PASSWORD), "System Administrator", "admin")
    logger.warning("Default admin account created (login: %s); change its password", DEFAULT_ADMIN_LOGIN)
    return True

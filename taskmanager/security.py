import base64
import binascii
import enum
import logging
from dataclasses import dataclass
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .errors import AuthenticationFailure
from .extensions import bcrypt
from .models import db, User, UserStatus
from .policy import EMAIL_CLAIM, ROLE_CLAIM, USER_ID_CLAIM, role_for_status

logger = logging.getLogger(__name__)

BASIC_SCHEME = 'basic '


class PasswordVerification(enum.Enum):
    SUCCESS = 'success'
    FAILED = 'failed'


@dataclass(frozen=True)
class ClaimsIdentity:
    """Verified attributes of an authenticated user, embedded in the token."""
    name: str
    user_id: int
    email: str
    role: str

    def claims(self):
        return {
            USER_ID_CLAIM: self.user_id,
            EMAIL_CLAIM: self.email,
            ROLE_CLAIM: self.role,
        }

# ============================================
# Basic authentication header
# ============================================

def extract_basic_credentials(header):
    """
    Parse `Basic base64(login:password)` into (login, password)

    Never raises for malformed input: a missing header, another scheme,
    bad base64 or a payload without ':' all give ('', '').
    """
    if not header:
        logger.debug("Authorization header is missing")
        return '', ''

    if not header.lower().startswith(BASIC_SCHEME):
        logger.debug(f"Unsupported authorization scheme: {header.split(' ')[0]}")
        return '', ''

    try:
        encoded = header[len(BASIC_SCHEME):].strip()
        credentials = base64.b64decode(encoded, validate=True).decode('utf-8')
    except (binascii.Error, ValueError) as e:
        logger.error(f"Failed to decode Basic authentication header: {str(e)}")
        return '', ''

    login, separator, password = credentials.partition(':')
    if not separator:
        logger.warning("Basic authentication payload has no ':' separator")
        return '', ''

    return login.strip(), password.strip()

# ============================================
# Password hashing
# ============================================

def hash_password(password):
    return bcrypt.generate_password_hash(password).decode('utf-8')


def verify_password(password_hash, password):
    """One-way check of `password` against a stored bcrypt hash."""
    if bcrypt.check_password_hash(password_hash, password):
        return PasswordVerification.SUCCESS
    return PasswordVerification.FAILED

# ============================================
# Authentication
# ============================================

def authenticate(login, password):
    """
    Return the user owning login/password, or None

    Fails closed on blank input, unknown login and wrong password. Store or
    hash errors raise AuthenticationFailure so callers can tell an internal
    problem apart from bad credentials.
    """
    if not login or not login.strip() or not password or not password.strip():
        logger.debug("Authentication attempt with empty login or password")
        return None

    try:
        user = User.query.filter_by(login=login).one_or_none()

        if user is None:
            logger.debug(f"User with login {login} not found")
            return None

        if verify_password(user.password_hash, password) is PasswordVerification.SUCCESS:
            logger.info(f"User authenticated: {login}")
            return user

        logger.warning(f"Invalid password for user: {login}")
        return None

    except (SQLAlchemyError, ValueError) as e:
        logger.error(f"Authentication error for {login}: {str(e)}", exc_info=True)
        raise AuthenticationFailure('Authentication failed') from e


def build_claims(user):
    """
    Record the login and build the ClaimsIdentity of `user`

    The last-login update is committed here and stays committed even if
    signing the token fails afterwards.
    """
    try:
        user.last_login_date = datetime.utcnow()
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to update last_login_date for {user.login}: {str(e)}", exc_info=True)
        raise AuthenticationFailure('Failed to build the user identity') from e

    role = role_for_status(user.user_status)
    logger.info(f"Building claims for user {user.login} with role {role.value}")

    return ClaimsIdentity(
        name=user.login,
        user_id=user.id,
        email=user.email or '',
        role=role.value,
    )


def get_claims_identity(login, password):
    """authenticate() followed by build_claims(); None on bad credentials."""
    user = authenticate(login, password)
    if user is None:
        return None
    return build_claims(user)

# ============================================
# Default administrator
# ============================================

def ensure_default_admin():
    """
    Create the configured administrator when no Admin user exists yet

    Returns the created user, or None when an Admin was already there.
    """
    config = current_app.config
    if User.query.filter_by(user_status=UserStatus.ADMIN.value).first():
        return None

    admin = User(
        first_name=config['DEFAULT_ADMIN_FIRST_NAME'],
        last_name=config['DEFAULT_ADMIN_LAST_NAME'],
        login=config['DEFAULT_ADMIN_LOGIN'],
        email=config['DEFAULT_ADMIN_EMAIL'],
        phone=config['DEFAULT_ADMIN_PHONE'],
        user_status=UserStatus.ADMIN.value,
        password_hash=hash_password(config['DEFAULT_ADMIN_PASSWORD']),
    )

    try:
        db.session.add(admin)
        db.session.commit()
        logger.info(f"Default administrator created: {admin.login}")
        return admin
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to create default administrator: {str(e)}", exc_info=True)
        raise

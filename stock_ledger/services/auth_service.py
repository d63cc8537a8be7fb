"""
Auth Service

Password hashing and bearer tokens for the API:
1. authenticate_user - check email/password credentials
2. issue_api_token - create a token; the plain text is returned once
3. resolve_api_token - look up the user behind an "Authorization: Bearer" token
4. revoke_api_token - delete one of a user's tokens

Tokens have the form "<token id>|<random secret>"; only the sha256 of the
secret is stored.
"""

import hashlib
import hmac
import secrets
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from stock_ledger.exceptions import RequestValidationFailed
from stock_ledger.models.user import ApiToken, User
from stock_ledger.utils.clock import SystemClock
from stock_ledger.utils.logger import create_logger

logger = create_logger(__name__)

PASSWORD_ALGORITHM = "pbkdf2_sha256"
PASSWORD_ITERATIONS = 260000
DEFAULT_TOKEN_NAME = "Personal Access Token"
INVALID_CREDENTIALS_MESSAGE = "The provided credentials are incorrect."


def hash_password(password: str, salt: Optional[str] = None, iterations: int = PASSWORD_ITERATIONS) -> str:
    """Hash a password as "pbkdf2_sha256$<iterations>$<salt>$<hex digest>"."""
    salt = salt or secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations).hex()
    return f"{PASSWORD_ALGORITHM}${iterations}${salt}${digest}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        algorithm, iterations, salt, digest = password_hash.split("$", 3)
    except ValueError:
        return False

    if algorithm != PASSWORD_ALGORITHM:
        return False

    candidate = hash_password(password, salt=salt, iterations=int(iterations))
    return hmac.compare_digest(candidate.rsplit("$", 1)[1], digest)


def hash_token(secret: str) -> str:
    return hashlib.sha256(secret.encode()).hexdigest()


def authenticate_user(db: Session, email: str, password: str) -> User:
    """
    Raises:
        RequestValidationFailed: If the credentials do not match an active user
    """
    user = db.query(User).filter(User.email == email).first()

    if user is None or not user.is_active or not verify_password(password, user.password_hash):
        logger.info(f"Rejected API login for {email}")
        raise RequestValidationFailed({"email": [INVALID_CREDENTIALS_MESSAGE]})

    return user


def issue_api_token(db: Session, user: User, name: Optional[str] = None) -> Tuple[ApiToken, str]:
    """
    Returns:
        tuple: (ApiToken, plain text token to hand to the client)
    """
    secret = secrets.token_hex(20)

    token = ApiToken(user_id=user.id, name=name or DEFAULT_TOKEN_NAME, token_hash=hash_token(secret))
    db.add(token)
    db.commit()

    logger.info(f"Issued API token {token.id} for user {user.id}")
    return token, f"{token.id}|{secret}"


def resolve_api_token(db: Session, plain_text_token: str, clock=None) -> Optional[User]:
    """User owning the token, or None for unknown tokens and inactive users."""
    token_id, separator, secret = plain_text_token.partition("|")
    if not separator or not token_id.isdigit() or not secret:
        return None

    token = db.get(ApiToken, int(token_id))
    if token is None or not hmac.compare_digest(token.token_hash, hash_token(secret)):
        return None

    if not token.user.is_active:
        return None

    token.last_used_at = (clock or SystemClock()).now()
    db.commit()

    return token.user


def revoke_api_token(db: Session, user: User, token_id: int) -> bool:
    deleted = (
        db.query(ApiToken)
        .filter(ApiToken.user_id == user.id, ApiToken.id == token_id)
        .delete(synchronize_session="fetch")
    )
    db.commit()
    return deleted > 0

import redis
from fastapi import Depends, Header, HTTPException, status
from redis import Redis as RedisClient
from sqlalchemy.orm import Session

from stock_ledger.config import CACHE_DRIVER, REDIS_HOSTNAME, REDIS_PORT
from stock_ledger.database import get_db
from stock_ledger.models.company import Company
from stock_ledger.models.user import User
from stock_ledger.services.auth_service import resolve_api_token
from stock_ledger.services.cache_store import CacheStore, InMemoryCacheStore, RedisCacheStore
from stock_ledger.utils.clock import SystemClock

UNAUTHENTICATED_MESSAGE = "Unauthenticated."
COMPANY_NOT_FOUND_MESSAGE = "Company not found."

_memory_cache = InMemoryCacheStore()


def get_redis_client() -> RedisClient:
    """
    Dependency to provide a redis client instance.

    Return:
        RedisClient: A redis client configured with the application's host params.
    """
    return redis.StrictRedis(
        host=REDIS_HOSTNAME,
        port=REDIS_PORT,
        decode_responses=True,
    )


def get_db_session():
    """
    Dependency to provide database session for FastAPI routes.

    Yields:
        Session: SQLAlchemy database session
    """
    yield from get_db()


def get_clock() -> SystemClock:
    return SystemClock()


def get_cache_store() -> CacheStore:
    """
    Dependency to provide the report cache selected by CACHE_DRIVER.

    Return:
        CacheStore: Redis-backed store, or the process-wide in-memory store.
    """
    if CACHE_DRIVER == "memory":
        return _memory_cache
    return RedisCacheStore(get_redis_client())


def get_current_user(
    authorization: str = Header(None),
    db: Session = Depends(get_db_session),
) -> User:
    """
    Dependency resolving the user of an "Authorization: Bearer <token>" header.

    Raises:
        HTTPException: 401 when the token is missing or invalid
    """
    scheme, _, token = (authorization or "").partition(" ")
    user = resolve_api_token(db, token.strip()) if scheme.lower() == "bearer" and token else None

    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=UNAUTHENTICATED_MESSAGE,
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user


def get_company(company_id: int, db: Session = Depends(get_db_session)) -> Company:
    """
    Dependency loading the company of a /companies/{company_id} route.

    Raises:
        HTTPException: 404 when the company does not exist
    """
    company = db.get(Company, company_id)
    if company is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=COMPANY_NOT_FOUND_MESSAGE)
    return company

"""FastAPI dependency injection."""

import uuid
from typing import AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from tradeintel.config import Settings, get_settings
from tradeintel.services.processing_pool import ProcessingPool

# Database engine and session factory (initialized in lifespan or lazily by workers)
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None

security = HTTPBearer()


def _build_engine(settings: Settings) -> AsyncEngine:
    return create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_size=20,
        max_overflow=10,
        pool_pre_ping=True,
    )


def get_session_factory(settings: Settings | None = None) -> async_sessionmaker[AsyncSession]:
    """Return the process-wide session factory, creating it on first use."""
    global _engine, _session_factory
    if _session_factory is None:
        _engine = _build_engine(settings or get_settings())
        _session_factory = async_sessionmaker(_engine, expire_on_commit=False)
    return _session_factory


async def get_db(settings: Settings = Depends(get_settings)) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session."""
    factory = get_session_factory(settings)
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def decode_access_token(token: str, settings: Settings) -> uuid.UUID:
    """Validate an access token and return its subject as a user id.

    Raises JWTError or ValueError on an invalid token.
    """
    payload = jwt.decode(
        token,
        settings.jwt_private_key.get_secret_value(),
        algorithms=[settings.jwt_algorithm],
    )
    user_id = payload.get("sub")
    token_type = payload.get("type")
    if user_id is None or token_type != "access":
        raise ValueError("invalid token payload")
    return uuid.UUID(user_id)


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    settings: Settings = Depends(get_settings),
) -> uuid.UUID:
    """Extract and validate user_id from JWT token."""
    try:
        return decode_access_token(credentials.credentials, settings)
    except JWTError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from e
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
        ) from e


def init_db(settings: Settings) -> tuple:
    """Initialize database engine and session factory. Called from lifespan."""
    global _engine, _session_factory
    _engine = _build_engine(settings)
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)
    return _engine, _session_factory


async def shutdown_db():
    """Dispose of the database engine. Called from lifespan."""
    global _engine, _session_factory
    if _engine:
        await _engine.dispose()
    _engine = None
    _session_factory = None


def get_processing_pool(request: Request) -> ProcessingPool:
    """The background extraction pool started in the app lifespan."""
    return request.app.state.processing_pool


def get_processing_service(settings: Settings = Depends(get_settings)):
    # Imported here: the pipeline itself depends on this module
    from tradeintel.services.processing_service import build_processing_service

    return build_processing_service(settings)

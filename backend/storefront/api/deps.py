from typing import Generator, Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from storefront.core.security import decode_jwt_token
from storefront.models.user import User
from storefront.core.config import settings
import logging

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/users/login")
optional_oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/users/login", auto_error=False
)

def get_db() -> Generator[Session, None, None]:
    """
    Dependency that yields a database session.
    """
    # Imported here so tests and startup can swap the session factory
    from storefront.db import session as db_session

    if db_session.SessionLocal is None:
        logger.error("Database session requested before initialization")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database is not available",
        )

    db = db_session.SessionLocal()
    try:
        yield db
    except HTTPException:
        # HTTP errors (401, 403, ...) propagate untouched
        db.rollback()
        raise
    finally:
        db.close()

def _credentials_exception(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )

def _user_from_token(db: Session, token: str) -> User:
    payload = decode_jwt_token(token)
    if not payload:
        raise _credentials_exception()

    user_id = payload.get("sub")
    if not user_id:
        raise _credentials_exception()

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise _credentials_exception("User not found")

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Inactive user",
        )

    return user

def get_current_user(
    db: Session = Depends(get_db),
    token: str = Depends(oauth2_scheme),
) -> User:
    """
    Dependency returning the authenticated user.
    """
    return _user_from_token(db, token)

def get_optional_user(
    db: Session = Depends(get_db),
    token: Optional[str] = Depends(optional_oauth2_scheme),
) -> Optional[User]:
    """
    Authenticated user when a valid bearer token is sent, otherwise None.
    """
    if not token:
        return None
    try:
        return _user_from_token(db, token)
    except HTTPException:
        logger.debug("Ignoring invalid bearer token on optional endpoint")
        return None

def get_current_seller(
    current_user: User = Depends(get_current_user),
) -> User:
    """
    Dependency checking the user is a seller.
    """
    if not current_user.is_seller:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User does not have seller permissions",
        )

    return current_user

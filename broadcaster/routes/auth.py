"""
Account routes for campaign authors.

Broadcast, subscriber and group endpoints all require a bearer token
issued here. Roles (user, editor, admin) are assigned out of band;
registration always creates a plain ``user`` who manages only their
own broadcasts.
"""
from fastapi import APIRouter, Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from pydantic import BaseModel

from ..database import get_db
from ..limiter import limiter
from ..logging_config import api_logger
from ..models.user import User
from ..schemas.auth import UserCreate, UserLogin, UserResponse
from ..auth import (
    verify_password,
    get_password_hash,
    create_tokens,
    get_required_user,
    refresh_access_token,
)
from ..config import get_settings

settings = get_settings()

router = APIRouter(prefix="/api/auth", tags=["auth"])


class TokenPair(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class RefreshRequest(BaseModel):
    refresh_token: str


def _authenticate(db: Session, email: str, password: str) -> User:
    """Resolve credentials to an active author, or answer 401/403."""
    user = db.query(User).filter(User.email == email.lower()).first()
    if not user or not verify_password(password, user.hashed_password):
        api_logger.warning("Rejected login", email=email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account disabled")
    return user


def _issue(user: User) -> TokenPair:
    access_token, refresh_token = create_tokens(user.id)
    return TokenPair(access_token=access_token, refresh_token=refresh_token)


@router.post("/register", response_model=UserResponse)
@limiter.limit(settings.register_rate_limit)
def register(request: Request, user_data: UserCreate, db: Session = Depends(get_db)):
    """Create an author account with the default ``user`` role."""
    email = user_data.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email already registered"
        )

    user = User(
        email=email,
        hashed_password=get_password_hash(user_data.password),
        display_name=user_data.display_name or email.split("@")[0],
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    api_logger.info("Author registered", user_id=user.id)
    return user


@router.post("/login", response_model=TokenPair)
@limiter.limit(settings.login_rate_limit)
def login(request: Request, form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """OAuth2 password form; ``username`` carries the email."""
    return _issue(_authenticate(db, form_data.username, form_data.password))


@router.post("/login/json", response_model=TokenPair)
@limiter.limit(settings.login_rate_limit)
def login_json(request: Request, credentials: UserLogin, db: Session = Depends(get_db)):
    return _issue(_authenticate(db, credentials.email, credentials.password))


@router.post("/refresh", response_model=TokenPair)
@limiter.limit("10/minute")
def refresh_tokens(request: Request, refresh_request: RefreshRequest, db: Session = Depends(get_db)):
    """Rotate both tokens; a disabled author's refresh token stops working."""
    tokens = refresh_access_token(refresh_request.refresh_token, db)
    if not tokens:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired refresh token",
        )

    access_token, refresh_token = tokens
    return TokenPair(access_token=access_token, refresh_token=refresh_token)


@router.get("/me", response_model=UserResponse)
def get_me(current_user: User = Depends(get_required_user)):
    """The signed-in author, including their role."""
    return current_user


@router.post("/logout")
def logout(current_user: User = Depends(get_required_user)):
    """Tokens are stateless JWTs; the client discards them."""
    return {"message": "Successfully logged out"}

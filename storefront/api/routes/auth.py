# storefront/api/routes/auth.py
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request, Response, status
from fastapi.security import OAuth2PasswordRequestForm

from storefront.api.deps import get_current_user, get_db, get_settings
from storefront.api.schemas.user import (
    PasswordChange,
    ProfileUpdate,
    RefreshRequest,
    TokenResponse,
    UserCreate,
    UserOut,
)
from storefront.config import Settings
from storefront.core.errors import ConflictError, DuplicateRecordError, ValidationError
from storefront.core.security import create_access_token, hash_password, verify_password
from storefront.database import FileBackedDB
from storefront.models.order import parse_timestamp, utcnow_iso
from storefront.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _issue_tokens(db: FileBackedDB, settings: Settings, user_id: str) -> dict:
    """
    Sign an access token and persist a new server-side refresh token for `user_id`.
    Stored refresh fields: token, user_id, created_at, expires_at (ISO).
    """
    access_token = create_access_token(
        subject=user_id,
        secret=settings.JWT_SECRET,
        algorithm=settings.JWT_ALGORITHM,
        expires_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
    )
    refresh_token = secrets.token_urlsafe(32)
    now = datetime.now(timezone.utc)
    db.create_record(
        "refresh_tokens",
        {
            "token": refresh_token,
            "user_id": user_id,
            "created_at": now.isoformat(),
            "expires_at": (now + timedelta(minutes=settings.REFRESH_TOKEN_EXPIRE_MINUTES)).isoformat(),
        },
        id_field="id",
    )
    return {"access_token": access_token, "token_type": "bearer", "refresh_token": refresh_token}


def _is_refresh_expired(row: dict) -> bool:
    expires_at = row.get("expires_at")
    if not expires_at:
        return True
    return datetime.now(timezone.utc) > parse_timestamp(expires_at)


@router.post("/register", response_model=UserOut, status_code=201)
def register(payload: UserCreate, db: FileBackedDB = Depends(get_db)):
    """
    Create a customer account. Usernames and emails are unique (emails compared lower-cased).
    """
    email = payload.email.strip().lower()
    user = User(
        username=payload.username.strip(),
        email=email,
        password_hash=hash_password(payload.password),
        is_admin=False,
        full_name=payload.full_name,
        phone=payload.phone,
        created_at=utcnow_iso(),
    )
    try:
        row = db.create_record("users", user.to_dict(), id_field="id", unique=("username", "email"))
    except DuplicateRecordError:
        raise ConflictError("Username or email already registered")
    logger.info("Registered user %s", user.username)
    return User.from_dict(row).mask_secret()


@router.post("/token", response_model=TokenResponse)
def token(
    response: Response,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: FileBackedDB = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Token endpoint used by OAuth2PasswordRequestForm clients. The username field
    accepts either the username or the email address.
    """
    login = form_data.username.strip()
    row = db.get_record("users", "username", login) or db.get_record("users", "email", login.lower())
    if not row or not verify_password(form_data.password, row.get("password_hash") or ""):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    tokens = _issue_tokens(db, settings, str(row["id"]))
    response.set_cookie(key="refresh_token", value=tokens["refresh_token"], httponly=True, samesite="lax")
    return tokens


@router.post("/refresh", response_model=TokenResponse)
def refresh(
    request: Request,
    response: Response,
    payload: Optional[RefreshRequest] = Body(None),
    db: FileBackedDB = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """
    Rotate tokens. The refresh token comes from the JSON body or the 'refresh_token' cookie.
    The old refresh token is deleted whether or not it was still valid.
    """
    raw = payload.refresh_token if payload else request.cookies.get("refresh_token")
    if not raw:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Refresh token required")

    row = db.get_record("refresh_tokens", "token", raw)
    if not row:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")
    db.delete_record("refresh_tokens", "token", raw)
    if _is_refresh_expired(row):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Refresh token expired")
    if not db.get_record("users", "id", row.get("user_id")):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token owner")

    tokens = _issue_tokens(db, settings, str(row["user_id"]))
    response.set_cookie(key="refresh_token", value=tokens["refresh_token"], httponly=True, samesite="lax")
    return tokens


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)):
    return current_user.mask_secret()


@router.put("/profile")
def update_profile(payload: ProfileUpdate, current_user: User = Depends(get_current_user),
                   db: FileBackedDB = Depends(get_db)):
    """
    Update name, email or phone. A new email must not belong to another account.
    """
    updates = {k: v.strip() for k, v in payload.model_dump(exclude_unset=True).items() if v}
    if not updates:
        raise ValidationError("No updates provided", details={"fields": ["full_name", "email", "phone"]})
    if "email" in updates:
        updates["email"] = updates["email"].lower()
        owner = db.get_record("users", "email", updates["email"])
        if owner and str(owner.get("id")) != str(current_user.id):
            raise ConflictError("Email already taken")
    row = db.update_record("users", "id", current_user.id, updates)
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    logger.info("Profile updated for user %s (%s)", current_user.username, ", ".join(sorted(updates)))
    return {"message": "Profile updated successfully", "user": User.from_dict(row).mask_secret()}


@router.put("/password")
def change_password(payload: PasswordChange, current_user: User = Depends(get_current_user),
                    db: FileBackedDB = Depends(get_db)):
    """
    Replace the password after checking the current one. Outstanding refresh tokens are revoked.
    """
    if not verify_password(payload.current_password, current_user.password_hash):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Current password is incorrect")
    db.update_record("users", "id", current_user.id, {"password_hash": hash_password(payload.new_password)})
    db.delete_record("refresh_tokens", "user_id", current_user.id)
    logger.info("Password changed for user %s", current_user.username)
    return {"message": "Password updated successfully"}

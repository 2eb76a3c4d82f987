# storefront/api/deps.py
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from storefront.config import Settings
from storefront.core.security import decode_access_token
from storefront.database import FileBackedDB
from storefront.models.user import User
from storefront.notifications.notifier import OrderNotifier
from storefront.notifications.support import SupportMailer
from storefront.realtime.broadcaster import Broadcaster
from storefront.services.orders import OrderService
from storefront.services.tracking import TrackingService

# auto_error=False so the cookie fallback below gets a chance
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


# Everything below is built once by create_app() and kept on app.state.

def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_db(request: Request) -> FileBackedDB:
    """
    Dependency that returns the file-backed DB object.
    Usage:
        db = Depends(get_db)
    """
    return request.app.state.db


def get_order_service(request: Request) -> OrderService:
    return request.app.state.orders


def get_tracking_service(request: Request) -> TrackingService:
    return request.app.state.tracking


def get_notifier(request: Request) -> OrderNotifier:
    return request.app.state.notifier


def get_support_mailer(request: Request) -> SupportMailer:
    return request.app.state.support


def get_broadcaster(request: Request) -> Broadcaster:
    return request.app.state.broadcaster


async def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: FileBackedDB = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> User:
    """
    Resolve the current user from the Bearer token, or from the 'access_token' cookie.
    Only signed, unexpired tokens are accepted; the 'sub' claim is the user id.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )
    raw = token or request.cookies.get("access_token")
    user_id = decode_access_token(raw, settings.JWT_SECRET, settings.JWT_ALGORITHM) if raw else None
    if not user_id:
        raise credentials_exception

    row = db.get_record("users", "id", user_id)
    if not row:
        raise credentials_exception
    return User.from_dict(row)


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """
    Dependency to require admin privileges. Raises 403 if user is not admin.
    """
    if not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin privileges required")
    return current_user

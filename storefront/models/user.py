# storefront/models/user.py
from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any


@dataclass
class User:
    """
    Domain model for a user.
    The FileBackedDB stores values as strings; these helpers normalize/convert types.
    """
    username: str
    email: str
    password_hash: str = ""
    is_admin: bool = False
    full_name: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[str] = None
    id: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.full_name or self.username

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "User":
        if d is None:
            raise ValueError("Cannot construct User from None")
        is_admin_raw = d.get("is_admin", False)
        # is_admin is stored as 'True'/'False' strings in CSV; normalize
        if isinstance(is_admin_raw, bool):
            is_admin = is_admin_raw
        else:
            is_admin = str(is_admin_raw).strip().lower() in ("1", "true", "yes", "y", "t")
        return cls(
            id=d.get("id") or None,
            username=str(d.get("username") or ""),
            email=str(d.get("email") or ""),
            password_hash=str(d.get("password_hash") or ""),
            is_admin=is_admin,
            full_name=d.get("full_name") or None,
            phone=d.get("phone") or None,
            created_at=d.get("created_at") or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Plain dict suitable for writing back to CSV.
        Note: password_hash is included (necessary for persistence); strip it in APIs.
        """
        return asdict(self)

    def mask_secret(self) -> Dict[str, Any]:
        """
        Return a representation safe to expose on API responses (no password_hash).
        """
        d = self.to_dict()
        d.pop("password_hash", None)
        return d

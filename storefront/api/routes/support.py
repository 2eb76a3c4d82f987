# storefront/api/routes/support.py
from fastapi import APIRouter, Depends

from storefront.api.deps import get_support_mailer
from storefront.api.schemas.support import SupportMessage
from storefront.core.errors import ValidationError
from storefront.notifications.support import SupportMailer

router = APIRouter(prefix="/api/support", tags=["support"])


@router.post("/send-message")
def send_message(payload: SupportMessage, support: SupportMailer = Depends(get_support_mailer)):
    """Public contact form. Whitespace-only fields count as missing."""
    fields = {k: v.strip() for k, v in payload.model_dump().items()}
    missing = sorted(k for k, v in fields.items() if not v)
    if missing:
        raise ValidationError("All fields are required", details={"missing": missing})
    support.submit(**fields)
    return {"success": True, "message": "Your message has been sent successfully. We will get back to you soon!"}

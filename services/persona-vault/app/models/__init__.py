from app.models.user import User
from app.models.identity import Identity
from app.models.app import App
from app.models.consent_request import ConsentRequest
from app.models.consent import Consent
from app.models.audit_log import AuditLog

__all__ = ["User", "Identity", "App", "ConsentRequest", "Consent", "AuditLog"]

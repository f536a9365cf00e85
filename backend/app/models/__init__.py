from app.models.base import Base
from app.models.audit import SeoAudit
from app.models.audit_page import AuditPage
from app.models.user_profile import UserProfile
from app.models.credit_transaction import CreditTransaction

__all__ = ["Base", "SeoAudit", "AuditPage", "UserProfile", "CreditTransaction"]

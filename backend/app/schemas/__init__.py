from app.schemas.audit import (
    AuditCreate,
    AuditResponse,
    AuditPageResponse,
    JobProgressResponse,
    AuditProgressResponse,
)
from app.schemas.profile import ProfileResponse, CreditTransactionResponse

__all__ = [
    "AuditCreate", "AuditResponse", "AuditPageResponse",
    "JobProgressResponse", "AuditProgressResponse",
    "ProfileResponse", "CreditTransactionResponse",
]

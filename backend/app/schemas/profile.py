from datetime import datetime

from pydantic import BaseModel


class ProfileResponse(BaseModel):
    user_id: str
    credits: int
    total_audits: int
    created_at: datetime

    model_config = {"from_attributes": True}


class CreditTransactionResponse(BaseModel):
    id: int
    amount: int
    type: str
    description: str | None
    audit_id: int | None
    created_at: datetime

    model_config = {"from_attributes": True}

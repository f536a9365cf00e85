from datetime import datetime

from pydantic import BaseModel, HttpUrl


class AuditCreate(BaseModel):
    url: HttpUrl


class AuditResponse(BaseModel):
    id: int
    user_id: str
    url: str
    domain: str | None
    status: str
    overall_score: int | None
    meta_score: int | None
    content_score: int | None
    performance_score: int | None
    technical_score: int | None
    pages_crawled: int
    issues_found: int
    fixes_generated: int
    results: dict | None
    summary: str | None
    completed_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AuditPageResponse(BaseModel):
    id: int
    audit_id: int
    url: str
    title: str | None
    meta_description: str | None
    headings: dict | None
    word_count: int
    internal_links: int
    external_links: int
    images: int
    schema_detected: list[str] | None
    issues: list[dict] | None

    model_config = {"from_attributes": True}


class JobProgressResponse(BaseModel):
    stage: str
    message: str
    percent: int


class AuditProgressResponse(BaseModel):
    status: str
    progress: JobProgressResponse | None = None

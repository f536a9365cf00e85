from fastapi import Header, HTTPException, Request

from app.worker import AuditPipeline


async def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Caller identity, set by the authenticating proxy in front of the API."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Not authenticated")
    return x_user_id.strip()


def get_pipeline(request: Request) -> AuditPipeline:
    return request.app.state.pipeline

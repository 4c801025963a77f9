"""Shared FastAPI dependencies."""

from fastapi import Header, HTTPException, Request, status

from komoru.achievements.pipeline import EvaluationPipeline
from komoru.database import get_session

get_db = get_session


async def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """User id resolved by the upstream auth layer and forwarded as X-User-Id."""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return x_user_id.strip()


def get_pipeline(request: Request) -> EvaluationPipeline:
    """The evaluation pipeline built by the application factory."""
    return request.app.state.pipeline

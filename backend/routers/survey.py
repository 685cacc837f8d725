"""
Gemelo Survey Router
Answers survey questions as the caller's digital twin.

Endpoints (mounted under /api/survey):
    POST   /generate          one JSON answer
    POST   /generate/stream   Server-Sent Events
    GET    /history           caller's past questions, newest first
    DELETE /history           forget them
    GET    /models            primary provider availability

The caller is identified by the X-User-Id header. Answers are never stored,
only the question, the model that answered and the outcome.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field, field_validator

from config import runtime_config
from errors import ConfigurationError, GemeloError, log_error
from providers.base import ImageAttachment
from services.i18n import normalize_language
from services.storage import STATUS_COMPLETED, STATUS_FAILED, JsonFileStore, UserProfile, get_store

from .survey_orchestration import GenerationOrchestrator, get_orchestrator
from .survey_orchestration.handlers import DEFAULT_PROVIDER
from .survey_streaming import STATUS_COMPLETED as STREAM_COMPLETED
from .survey_streaming import ResponseRelay, build_error, build_result

logger = logging.getLogger(__name__)

router = APIRouter()


class ImagePayload(BaseModel):
    mimeType: str = Field(min_length=1)
    data: str = Field(min_length=1)


class GenerateBody(BaseModel):
    question: str
    includeThinking: bool = False
    image: Optional[ImagePayload] = None

    @field_validator("question")
    @classmethod
    def _question_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("question must not be empty")
        return value

    def attachment(self) -> Optional[ImageAttachment]:
        if self.image is None:
            return None
        return ImageAttachment(mime_type=self.image.mimeType, data=self.image.data)


# =============================================================================
# Dependencies
# =============================================================================


def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    store: JsonFileStore = Depends(get_store),
) -> UserProfile:
    """Resolve the X-User-Id header to a profile snapshot."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    try:
        user_id = int(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid X-User-Id header")

    profile = store.get_user(user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"User {user_id} not found")
    return profile


def _record(store: JsonFileStore, user: UserProfile, question: str, model_used: Optional[str], status: str) -> None:
    """Write a history record; a storage failure never fails the request."""
    try:
        store.record_response(user.id, question, model_used, status)
    except OSError as e:
        logger.error(f"Failed to record survey response for user {user.id}: {e}")


# =============================================================================
# Generation
# =============================================================================


@router.post("/generate")
async def generate(
    body: GenerateBody,
    user: UserProfile = Depends(get_current_user),
    store: JsonFileStore = Depends(get_store),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    language = normalize_language(user.language)
    try:
        result = await orchestrator.generate(
            user, body.question, include_thinking=body.includeThinking, image=body.attachment()
        )
    except GemeloError as e:
        log_error(logger, e, context=f"generate user={user.id}", include_traceback=not isinstance(e, ConfigurationError))
        _record(store, user, body.question, None, STATUS_FAILED)
        return JSONResponse(status_code=500, content=build_error(e, language))

    _record(store, user, body.question, result.model_used, STATUS_COMPLETED)
    return build_result(result, language)


@router.post("/generate/stream")
async def generate_stream(
    body: GenerateBody,
    user: UserProfile = Depends(get_current_user),
    store: JsonFileStore = Depends(get_store),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    stream = orchestrator.stream(user, body.question, include_thinking=body.includeThinking, image=body.attachment())
    relay = ResponseRelay(
        idle_timeout_s=runtime_config.stream_idle_timeout_s,
        heartbeat_s=runtime_config.stream_heartbeat_s,
        queue_size=runtime_config.stream_queue_size,
        language=normalize_language(user.language),
    )

    def on_complete(status: str, model_used: Optional[str]) -> None:
        record_status = STATUS_COMPLETED if status == STREAM_COMPLETED else STATUS_FAILED
        _record(store, user, body.question, model_used, record_status)

    return StreamingResponse(
        relay.relay(stream, on_complete=on_complete),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


# =============================================================================
# History
# =============================================================================


@router.get("/history")
async def get_history(
    user: UserProfile = Depends(get_current_user),
    store: JsonFileStore = Depends(get_store),
):
    responses = store.list_responses(user.id)
    return {"responses": responses, "total": len(responses)}


@router.delete("/history")
async def clear_history(
    user: UserProfile = Depends(get_current_user),
    store: JsonFileStore = Depends(get_store),
):
    removed = store.clear_responses(user.id)
    return {"success": True, "deleted": removed}


# =============================================================================
# Models
# =============================================================================


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


@router.get("/models")
async def get_models(
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """Availability of the primary provider's models. Public, no caller identity needed."""
    provider = orchestrator.providers[DEFAULT_PROVIDER]
    snapshot = provider.tracker.status(provider.models)

    rate_limited = [
        {
            "model": item["model"],
            "nextAvailableTime": _iso(item["nextAvailableAt"]),
            "minutesUntilAvailable": item["minutesUntilAvailable"],
            "secondsUntilAvailable": item["secondsUntilAvailable"],
        }
        for item in snapshot["rateLimited"]
    ]
    available = snapshot["available"]

    return {
        "available": available,
        "rateLimited": rate_limited,
        "status": {
            "hasAvailableModels": bool(available),
            "primaryModel": available[0] if available else None,
            "minutesUntilAvailable": (
                min(item["minutesUntilAvailable"] for item in rate_limited) if rate_limited and not available else 0
            ),
        },
    }

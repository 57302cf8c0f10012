import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from fastapi.responses import StreamingResponse

from catalog_chat.api.deps import get_caller_id, get_orchestrator
from catalog_chat.errors import CatalogChatError
from catalog_chat.models.api_io import TurnRequest
from catalog_chat.services.orchestrator import ChatOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat turn"])


@router.post("")
async def post_turn(
    body: TurnRequest,
    x_auto_error_resolved: Optional[str] = Header(default=None),
    caller_id: str = Depends(get_caller_id),
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
):
    """Run one turn and stream the assistant's answer as plain text."""
    if x_auto_error_resolved is not None and x_auto_error_resolved.strip().lower() == "true":
        body = body.model_copy(update={"auto_error_resolved": True})

    try:
        turn = await orchestrator.handle_turn(body, caller_id)
    except CatalogChatError as e:
        logger.warning("Turn for chat %s rejected: %s (%s)", body.conversation_id, e.code, e.message)
        raise HTTPException(status_code=e.http_status, detail=e.message)
    except Exception as e:
        logger.error("Error processing message for chat %s: %s", body.conversation_id, e, exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to process message due to an internal error.")

    return StreamingResponse(
        turn.stream,
        media_type="text/plain; charset=utf-8",
        headers={"X-Chat-Intent": turn.intent.value},
    )

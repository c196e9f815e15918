"""Session endpoints for chat and oversight clients."""

from fastapi import APIRouter, status

from tandem.api.dependencies import ArchiverDep, ServiceDep
from tandem.api.exceptions import (
    InvalidRequestError,
    SessionArchivedError,
    SessionNotFoundError,
)
from tandem.api.models.sessions import (
    AcceptedResponse,
    ActiveSessionResponse,
    MessageResponse,
    PromptResponse,
    SendMessageRequest,
    SessionResponse,
    SlotRequest,
    StartSessionRequest,
)
from tandem.conversation.errors import NotFoundError
from tandem.conversation.models import Session
from tandem.conversation.service import ConversationService
from tandem.conversation.summary import InteractionSummary
from tandem.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/sessions")


async def _get_session_or_404(service: ConversationService, session_id: str) -> Session:
    session = await service.store.get_session(session_id)
    if session is None:
        raise SessionNotFoundError(f"Session {session_id} not found")
    return session


@router.post("", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def start_session(
    service: ServiceDep,
    request: StartSessionRequest | None = None,
) -> SessionResponse:
    """Start a new conversation and join it as the requesting slot."""
    slot = request.slot if request else StartSessionRequest().slot
    session = await service.start_conversation(slot)
    logger.info("start_session_request", session_id=session.session_id, slot=slot.value)
    return SessionResponse.from_session(session)


@router.get("", response_model=list[ActiveSessionResponse])
async def list_active_sessions(archiver: ArchiverDep) -> list[ActiveSessionResponse]:
    """Oversight listing of active sessions with per-slot liveness.

    Evaluating the listing archives sessions whose participants are both
    gone.
    """
    view = await archiver.run_pass()
    return [ActiveSessionResponse.from_view(entry) for entry in view]


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str, service: ServiceDep) -> SessionResponse:
    return SessionResponse.from_session(await _get_session_or_404(service, session_id))


@router.post("/{session_id}/join", response_model=SessionResponse)
async def join_session(
    session_id: str, request: SlotRequest, service: ServiceDep
) -> SessionResponse:
    """Join an existing session. Rejoining lifts archival."""
    try:
        session = await service.join_conversation(session_id, request.slot)
    except NotFoundError as e:
        raise SessionNotFoundError(str(e)) from e
    return SessionResponse.from_session(session)


@router.post("/{session_id}/heartbeat", status_code=status.HTTP_204_NO_CONTENT)
async def heartbeat(session_id: str, request: SlotRequest, service: ServiceDep) -> None:
    try:
        await service.heartbeat(session_id, request.slot)
    except NotFoundError as e:
        raise SessionNotFoundError(str(e)) from e


@router.post(
    "/{session_id}/leave",
    response_model=AcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def leave_session(
    session_id: str, request: SlotRequest, service: ServiceDep
) -> AcceptedResponse:
    """Best-effort departure. Always accepted."""
    await service.leave(session_id, request.slot)
    return AcceptedResponse()


@router.post(
    "/{session_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    session_id: str, request: SendMessageRequest, service: ServiceDep
) -> MessageResponse:
    session = await _get_session_or_404(service, session_id)
    if session.archived:
        raise SessionArchivedError(f"Session {session_id} is archived; join it again first")
    try:
        message = await service.send(session_id, request.slot, request.content)
    except ValueError as e:
        raise InvalidRequestError(str(e)) from e
    return MessageResponse.from_message(message)


@router.get("/{session_id}/messages", response_model=list[MessageResponse])
async def list_messages(session_id: str, service: ServiceDep) -> list[MessageResponse]:
    """Ordered transcript with repeated system events collapsed."""
    try:
        messages = await service.transcript(session_id)
    except NotFoundError as e:
        raise SessionNotFoundError(str(e)) from e
    return [MessageResponse.from_message(m) for m in messages]


@router.get("/{session_id}/prompt", response_model=PromptResponse)
async def get_prompt(session_id: str, service: ServiceDep) -> PromptResponse:
    try:
        prompt = await service.prompt(session_id)
    except NotFoundError as e:
        raise SessionNotFoundError(str(e)) from e
    return PromptResponse(session_id=session_id, prompt=prompt)


@router.get("/{session_id}/summary", response_model=InteractionSummary)
async def get_summary(session_id: str, service: ServiceDep) -> InteractionSummary:
    try:
        return await service.summary(session_id)
    except NotFoundError as e:
        raise SessionNotFoundError(str(e)) from e

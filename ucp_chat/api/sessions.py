from fastapi import APIRouter, Depends, HTTPException

from ucp_chat.dependencies import get_session_store, new_chat_controller
from ucp_chat.models.schemas import (
    ChatRequest,
    ChatResponse,
    CreateSessionResponse,
    InspectorRow,
    SessionDetail,
    SessionInfo,
)
from ucp_chat.models.sessions import SessionStore
from ucp_chat.services.chat import ChatController
from ucp_chat.services.inspector import inspect

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


def _get_or_404(store: SessionStore, session_id: str) -> ChatController:
    controller = store.get(session_id)
    if controller is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return controller


@router.post("", response_model=CreateSessionResponse, status_code=201)
async def create_new_session(
    controller: ChatController = Depends(new_chat_controller),
    store: SessionStore = Depends(get_session_store),
):
    session_id = store.create(controller)
    return CreateSessionResponse(session_id=session_id, messages=controller.messages)


@router.get("", response_model=list[SessionInfo])
async def list_all_sessions(store: SessionStore = Depends(get_session_store)):
    return [
        SessionInfo(
            session_id=session_id,
            step=c.state.step,
            user_name=c.state.user_name,
            merchant_display_name=c.state.merchant_display_name,
            message_count=len(c.messages),
        )
        for session_id, c in store.items()
    ]


@router.get("/{session_id}", response_model=SessionDetail)
async def get_session_detail(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
):
    controller = _get_or_404(store, session_id)
    return SessionDetail(session_id=session_id, state=controller.state, messages=controller.messages)


@router.post("/{session_id}/messages", response_model=ChatResponse)
async def send_message(
    session_id: str,
    request: ChatRequest,
    store: SessionStore = Depends(get_session_store),
):
    controller = _get_or_404(store, session_id)
    if controller.busy:
        raise HTTPException(status_code=409, detail="A message is already being processed")

    messages = await controller.handle_input(request.message)
    return ChatResponse(session_id=session_id, step=controller.state.step, messages=messages)


@router.get("/{session_id}/inspector", response_model=list[InspectorRow])
async def get_inspector(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
):
    controller = _get_or_404(store, session_id)
    return inspect(controller.ucp)


@router.delete("/{session_id}", status_code=204)
async def delete_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
):
    if not store.delete(session_id):
        raise HTTPException(status_code=404, detail="Session not found")

"""Chat API - 3 endpoints."""
from fastapi import APIRouter, Depends

from newsrag.dependencies import get_chat_service
from newsrag.schemas.chat import ChatHistoryResponse, ChatRequest, ChatResponse, ClearChatResponse
from newsrag.services.chat_service import ChatService

router = APIRouter()


# POST /chat
@router.post("", response_model=ChatResponse)
async def send_message(
    body: ChatRequest,
    chat: ChatService = Depends(get_chat_service),
):
    """Answer a question with RAG and store both sides of the turn."""
    result = await chat.handle_turn(body.session_id, body.message)
    return ChatResponse(session_id=body.session_id, message=result.message, sources=result.sources)


# GET /chat/{session_id}
@router.get("/{session_id}", response_model=ChatHistoryResponse)
async def get_history(
    session_id: str,
    chat: ChatService = Depends(get_chat_service),
):
    messages = await chat.history(session_id)
    return ChatHistoryResponse(session_id=session_id, messages=messages)


# DELETE /chat/{session_id}
@router.delete("/{session_id}", response_model=ClearChatResponse)
async def clear_history(
    session_id: str,
    chat: ChatService = Depends(get_chat_service),
):
    await chat.clear(session_id)
    return ClearChatResponse(session_id=session_id, success=True)

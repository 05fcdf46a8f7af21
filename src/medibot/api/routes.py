"""
HTTP routes. Each handler validates input, delegates to the orchestrator or
the store, and shapes the JSON response.
"""

import logging

from fastapi import APIRouter, Depends, Request

from ..core.models import CreateUserParams, FrontendConversation
from ..orchestration.orchestrator import ConversationOrchestrator
from ..utils.validation import ValidationError, validate_email
from .schemas import (
    ChatRequest,
    ChatResponse,
    CreateUserRequest,
    CreateUserResponse,
    MessageResponse,
    UserResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_orchestrator(request: Request) -> ConversationOrchestrator:
    return request.app.state.orchestrator


@router.post("/user", response_model=CreateUserResponse, tags=["users"])
async def create_user(
    req: CreateUserRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> CreateUserResponse:
    email = validate_email(req.email)
    user = await orchestrator.store.create_user(
        CreateUserParams(email=email, username=req.username, role=req.role)
    )
    return CreateUserResponse(user_id=user.id)


@router.get("/user/", response_model=UserResponse, tags=["users"])
async def get_user_by_email(
    email: str | None = None,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> UserResponse:
    if not email:
        raise ValidationError("email query parameter is required", field="email")
    user = await orchestrator.store.get_user_by_email(email)
    return UserResponse.from_user(user)


@router.post("/chat", response_model=ChatResponse, tags=["chat"])
async def chat(
    req: ChatRequest,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> ChatResponse:
    result = await orchestrator.converse(
        user_id=req.user_id,
        conversation_id=req.con_id,
        sender=req.sender,
        content=req.content,
    )
    return ChatResponse(
        conversation_id=result.conversation_id, ai_response=result.ai_response
    )


@router.get("/chat/messages", response_model=list[MessageResponse], tags=["chat"])
async def get_conversation_messages(
    conId: str | None = None,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> list[MessageResponse]:
    if not conId:
        raise ValidationError("conId query parameter is required", field="conId")
    messages = await orchestrator.get_messages(conId)
    return [MessageResponse.from_message(m) for m in messages]


@router.get(
    "/conversations", response_model=list[FrontendConversation], tags=["chat"]
)
async def list_conversations(
    userId: str | None = None,
    orchestrator: ConversationOrchestrator = Depends(get_orchestrator),
) -> list[FrontendConversation]:
    if not userId:
        raise ValidationError("userId query parameter is required", field="userId")
    return await orchestrator.list_conversations(userId)


@router.get("/health", tags=["meta"])
async def health() -> dict:
    return {"status": "ok"}

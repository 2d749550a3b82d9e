import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from anonchat.api.deps import get_container, get_optional_session, get_web_session, require_admin
from anonchat.container import AppContainer
from anonchat.errors import UnauthorizedError
from anonchat.schemas import ConversationDetail, ConversationSummary, MessageRecord, WebSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])

class LoginReq(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    # bcrypt only looks at the first 72 bytes
    password: str = Field(..., min_length=1, max_length=72)

class ReplyReq(BaseModel):
    message: str

@router.post("/login")
def login(
    req: LoginReq,
    session: WebSession = Depends(get_web_session),
    container: AppContainer = Depends(get_container),
):
    if not container.auth.authenticate(req.username, req.password):
        logger.warning(f"Failed admin login for {req.username!r}")
        raise UnauthorizedError("Invalid credentials")
    container.sessions.set_admin(session.session_id, True)
    logger.info(f"Admin {req.username!r} logged in")
    return {"success": True}

@router.post("/logout")
async def logout(
    session: Optional[WebSession] = Depends(get_optional_session),
    container: AppContainer = Depends(get_container),
):
    # only the capability goes; the visitor side of the session survives
    if session is not None:
        container.sessions.set_admin(session.session_id, False)
    return {"success": True}

@router.get("/conversations", response_model=List[ConversationSummary])
async def list_conversations(
    _: WebSession = Depends(require_admin),
    container: AppContainer = Depends(get_container),
):
    return container.chat.conversation_summaries()

@router.get("/conversation/{conversation_id}", response_model=ConversationDetail)
async def get_conversation(
    conversation_id: int,
    _: WebSession = Depends(require_admin),
    container: AppContainer = Depends(get_container),
):
    conversation, messages = container.chat.conversation_detail(conversation_id)
    return ConversationDetail(conversation=conversation, messages=messages)

@router.post("/reply/{conversation_id}", response_model=MessageRecord)
async def reply(
    conversation_id: int,
    req: ReplyReq,
    _: WebSession = Depends(require_admin),
    container: AppContainer = Depends(get_container),
):
    return container.chat.send_admin_reply(conversation_id, req.message)

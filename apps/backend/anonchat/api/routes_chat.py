from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from anonchat.api.deps import get_container, get_optional_session, get_web_session
from anonchat.container import AppContainer
from anonchat.schemas import MessageRecord, WebSession

router = APIRouter(prefix="/api", tags=["chat"])

class SendMessageReq(BaseModel):
    message: str

@router.get("/session", response_model=WebSession)
async def get_session(session: WebSession = Depends(get_web_session)):
    return session

@router.get("/messages", response_model=List[MessageRecord])
async def get_messages(
    session: Optional[WebSession] = Depends(get_optional_session),
    container: AppContainer = Depends(get_container),
):
    # pull path: a visitor who missed pushes gets the full transcript here
    if session is None:
        return []
    return container.chat.transcript_for_session(session.session_id)

@router.post("/send-message", response_model=MessageRecord)
async def send_message(
    req: SendMessageReq,
    session: WebSession = Depends(get_web_session),
    container: AppContainer = Depends(get_container),
):
    return container.chat.send_visitor_message(session.session_id, req.message)

from fastapi import APIRouter, Depends

from dependencies import ChatServices, RoomMember, get_services, require_member
from logging_config import get_logger
from schemas.messages import MessageListResponse, SendMessageRequest, SendMessageResponse

logger = get_logger(__name__)

messages_router = APIRouter(prefix="/api/message", tags=["messages"])


@messages_router.get("", response_model=MessageListResponse)
def list_messages(member: RoomMember = Depends(require_member), services: ChatServices = Depends(get_services)):
    messages = services.messages.list(member.room_id)
    logger.debug(f"Returning {len(messages)} messages for room {member.room_id}")
    return {"messages": messages}


@messages_router.post("", response_model=SendMessageResponse)
def send_message(
    body: SendMessageRequest,
    member: RoomMember = Depends(require_member),
    services: ChatServices = Depends(get_services),
):
    message = services.messages.append(member.room_id, body.sender, body.text, token=member.membership.token)
    logger.info(f"Message {message.id} sent to room {member.room_id}")
    return SendMessageResponse(success=True, message_id=message.id)

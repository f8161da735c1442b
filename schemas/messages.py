from pydantic import BaseModel, Field

from constants import MAX_SENDER_LENGTH, MAX_TEXT_LENGTH


class SendMessageRequest(BaseModel):
    sender: str = Field(..., max_length=MAX_SENDER_LENGTH)
    text: str = Field(..., max_length=MAX_TEXT_LENGTH)

class SendMessageResponse(BaseModel):
    success: bool
    message_id: str

class PublicMessage(BaseModel):
    id: str
    sender: str
    text: str
    timestamp: int

class MessageListResponse(BaseModel):
    messages: list[PublicMessage]

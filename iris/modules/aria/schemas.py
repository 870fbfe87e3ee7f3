from pydantic import BaseModel, Field
from typing import Optional, List, Literal, Dict, Any


class ChatAttachment(BaseModel):
    name: Optional[str] = None
    mime_type: str = Field(default="application/octet-stream", alias="mimeType")
    data: str  # base64

    class Config:
        populate_by_name = True


class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str = ""
    attachments: List[ChatAttachment] = []


class AriaContext(BaseModel):
    """Client-side context. userId and userRole are always replaced by the authenticated caller."""
    user_name: Optional[str] = Field(default=None, alias="userName")
    user_id: Optional[str] = Field(default=None, alias="userId")
    user_role: Optional[str] = Field(default=None, alias="userRole")
    team_name: Optional[str] = Field(default=None, alias="teamName")
    team_id: Optional[str] = Field(default=None, alias="teamId")
    current_page: Optional[str] = Field(default=None, alias="currentPage")
    recent_actions: List[str] = Field(default=[], alias="recentActions")
    tasks: Optional[List[Dict[str, Any]]] = None
    projects: Optional[List[Dict[str, Any]]] = None

    class Config:
        populate_by_name = True


class ChatRequest(BaseModel):
    messages: List[ChatMessage] = []
    context: AriaContext = AriaContext()
    stream: bool = True


class ChatReply(BaseModel):
    role: Literal["assistant"] = "assistant"
    content: str


class ChatResponse(BaseModel):
    message: ChatReply

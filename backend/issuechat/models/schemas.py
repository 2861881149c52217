from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Sender(str, Enum):
    user = "user"
    bot = "bot"


class MessageType(str, Enum):
    text = "text"
    markdown = "markdown"
    status = "status"


class Message(BaseModel):
    id: str = Field(min_length=1)
    content: str
    sender: Sender
    timestamp: int = Field(ge=0)
    type: MessageType = MessageType.text

    model_config = ConfigDict(frozen=True)


class MessageEventKind(str, Enum):
    created = "created"
    updated = "updated"
    replaced = "replaced"


class MessageEvent(BaseModel):
    kind: MessageEventKind
    sessionId: str = Field(min_length=1)
    ts: int = Field(ge=0)
    message: Message | None = None
    messages: list[Message] | None = None

    @model_validator(mode="after")
    def validate_body(self) -> "MessageEvent":
        if self.kind == MessageEventKind.replaced:
            if self.messages is None:
                raise ValueError("messages is required when kind=replaced")
        elif self.message is None:
            raise ValueError("message is required when kind=created or kind=updated")
        return self


# Remote issue/tool service payloads


class IssueData(BaseModel):
    description: str

    model_config = ConfigDict(extra="allow")


class IssueFetchResponse(BaseModel):
    success: bool
    message: str | None = None
    data: IssueData | None = None

    @model_validator(mode="after")
    def validate_data(self) -> "IssueFetchResponse":
        if self.success and self.data is None:
            raise ValueError("data is required when success=true")
        return self


class ToolDetectionData(BaseModel):
    tools: list[str] | None = None


class ToolDetectionResponse(BaseModel):
    data: ToolDetectionData | None = None

    @property
    def tools(self) -> list[str]:
        if self.data is None or not self.data.tools:
            return []
        return list(self.data.tools)


class ToolRunResponse(BaseModel):
    success: bool = False
    message: str | None = None


# HTTP API payloads


class MessageCreateRequest(BaseModel):
    content: str

    @model_validator(mode="after")
    def validate_content(self) -> "MessageCreateRequest":
        if not self.content or not self.content.strip():
            raise ValueError("content is required")
        self.content = self.content.strip()
        return self


class MessageListResponse(BaseModel):
    messages: list[Message] = Field(default_factory=list)


class MessageHistoryRequest(BaseModel):
    messages: list[Message] = Field(default_factory=list)


class MessageAccepted(BaseModel):
    sessionId: str
    messageId: str
    pipelineScheduled: bool


class SessionCreateRequest(BaseModel):
    title: str | None = None


class SessionSummary(BaseModel):
    sessionId: str
    title: str
    createdAt: int
    updatedAt: int
    messageCount: int


class SessionListResponse(BaseModel):
    items: list[SessionSummary]
    total: int


class HealthResponse(BaseModel):
    status: str

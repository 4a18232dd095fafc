"""API-specific request and response models."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from mentra_models import Message, Thread


class ApiModel(BaseModel):
    """Base for API bodies, serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ThreadResponse(ApiModel):
    """Response model for a single thread."""

    thread: Thread


class ThreadListResponse(ApiModel):
    """Response model for the thread list, most recent first."""

    threads: list[Thread]


class ChatRequest(ApiModel):
    """JSON body for sending a message without files."""

    content: str = Field("", description="User message")
    response_style: str | None = Field(None, description="concise, step_by_step, detailed, exam_ready or beginner")
    include_practice: bool = Field(True, description="Ask for practice questions")


class ChatResponse(ApiModel):
    """Response model for a recorded reply."""

    message: Message
    thread: Thread


class ChatFailureResponse(ChatResponse):
    """Model failure: the apology was still recorded in the thread."""

    error: str


class ErrorResponse(ApiModel):
    """Error body."""

    error: str


class OkResponse(ApiModel):
    ok: bool = True

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from autobrief.core.domain.summary_job import JobStatus, SummaryJob


class UploadResponse(BaseModel):
    id: str
    status: JobStatus
    message: str


class ErrorResponse(BaseModel):
    error: str
    detail: Optional[str] = None


class ResultResponse(BaseModel):
    id: str
    file_name: str
    file_type: str
    summary: Optional[str] = None
    key_points: Optional[List[str]] = None
    action_items: Optional[List[str]] = None
    created_at: datetime
    status: JobStatus
    status_detail: Optional[str] = None

    @classmethod
    def from_job(cls, job: SummaryJob) -> "ResultResponse":
        return cls(
            id=job.job_id,
            file_name=job.source_name,
            file_type=job.media_type,
            summary=job.summary,
            key_points=job.key_points,
            action_items=job.action_items,
            created_at=job.created_at,
            status=job.status,
            status_detail=job.status_detail,
        )


class ResultListResponse(BaseModel):
    results: List[ResultResponse]


class ObserverEvent(BaseModel):
    type: Literal["view"] = "view"
    data: Dict[str, Any]


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str = ""


class ChatRequest(BaseModel):
    messages: Optional[List[ChatMessage]] = None


class ChatStreamEvent(BaseModel):
    type: Literal["chunk", "done", "error"]
    data: Optional[str] = None


class PaymentRequest(BaseModel):
    signature: str = Field(..., min_length=1)
    plan: str
    amount: float

    @field_validator("signature", "plan")
    @classmethod
    def strip_value(cls, value: str) -> str:
        return value.strip()


class PaymentResponse(BaseModel):
    success: bool = True
    plan: str
    message: str


class UserCreate(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    password: str = Field(..., min_length=8, max_length=256)
    full_name: Optional[str] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        value = value.strip().lower()
        if "@" not in value:
            raise ValueError("Invalid email address.")
        return value


class UserLogin(BaseModel):
    email: str
    password: str


class UsagePublic(BaseModel):
    used: int
    limit: Optional[int] = None


class UserPublic(BaseModel):
    user_id: str
    email: str
    full_name: Optional[str] = None
    plan: str = "free"
    usage: Optional[UsagePublic] = None


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"

"""
Pydantic response schemas for the feedback backend.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from feedback_backend.records import Feedback, Improvement


class FeedbackDeletedResponse(BaseModel):
    message: str
    deleted: Feedback


class ImprovementDeletedResponse(BaseModel):
    message: str
    deleted: Improvement


class UserInfo(BaseModel):
    id: str
    name: str
    email: str
    picture: Optional[str] = None


class AuthStatusResponse(BaseModel):
    authenticated: bool
    user: Optional[UserInfo] = None


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str

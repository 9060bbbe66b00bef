# cardiointake/api/schemas.py
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from cardiointake.intake.aggregator import FollowUpSection


class StartIntakeResponse(BaseModel):
    session_id: str
    step: str
    greeting: str


class DetailsRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None


class DetailsResponse(BaseModel):
    session_id: str
    step: str
    symptoms: List[str]


class SymptomSelectionRequest(BaseModel):
    symptoms: List[str] = Field(default_factory=list)


class FollowUpResponse(BaseModel):
    session_id: str
    step: str
    intro: str
    symptoms: List[str]
    follow_up: List[FollowUpSection]


class SubmitRequest(BaseModel):
    responses: Dict[str, Optional[str]] = Field(default_factory=dict)


class SubmitResponse(BaseModel):
    session_id: str
    step: str
    success: bool
    msg: str


class SessionSnapshot(BaseModel):
    session_id: str
    step: str
    patient_name: Optional[str]
    patient_email: Optional[str]
    selected_symptoms: List[str]
    follow_up: List[FollowUpSection]
    created_at: datetime
    updated_at: datetime


class ErrorResponse(BaseModel):
    error: str
    field: Optional[str] = None

# cardiointake/api/routes.py
from __future__ import annotations

import logging
from typing import List

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from cardiointake.llm import Narrator
from cardiointake.services import IntakeSessionService
from .dependencies import get_intake_service, get_narrator
from .schemas import (
    StartIntakeResponse,
    DetailsRequest,
    DetailsResponse,
    SymptomSelectionRequest,
    FollowUpResponse,
    SubmitRequest,
    SubmitResponse,
    SessionSnapshot,
    ErrorResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    }
)


@router.get("/symptoms", response_model=List[str])
def list_symptoms(service: IntakeSessionService = Depends(get_intake_service)) -> List[str]:
    return service.list_symptoms()


@router.post("/intake/start", response_model=StartIntakeResponse)
async def start_intake(
    service: IntakeSessionService = Depends(get_intake_service),
) -> StartIntakeResponse:
    """
    Start a new intake session and greet the patient.
    """
    session, payload = await service.start_session()
    return StartIntakeResponse(
        session_id=session.id,
        step=session.step.value,
        greeting=payload.greeting,
    )


@router.post("/intake/{session_id}/details", response_model=DetailsResponse)
async def submit_details(
    session_id: str,
    payload: DetailsRequest,
    service: IntakeSessionService = Depends(get_intake_service),
) -> DetailsResponse:
    session, result = await service.submit_details(session_id, payload.name, payload.email)
    return DetailsResponse(
        session_id=session.id,
        step=session.step.value,
        symptoms=result.symptoms,
    )


@router.post("/intake/{session_id}/symptoms", response_model=FollowUpResponse)
async def select_symptoms(
    session_id: str,
    payload: SymptomSelectionRequest,
    service: IntakeSessionService = Depends(get_intake_service),
) -> FollowUpResponse:
    session, result = await service.select_symptoms(session_id, payload.symptoms)
    return FollowUpResponse(
        session_id=session.id,
        step=session.step.value,
        intro=result.intro,
        symptoms=result.symptoms,
        follow_up=result.follow_up.sections,
    )


@router.post("/intake/{session_id}/submit", response_model=SubmitResponse)
async def submit_form(
    session_id: str,
    payload: SubmitRequest,
    service: IntakeSessionService = Depends(get_intake_service),
) -> SubmitResponse:
    session, result = await service.submit_responses(session_id, payload.responses)
    return SubmitResponse(
        session_id=session.id,
        step=session.step.value,
        success=result.success,
        msg=result.msg,
    )


@router.get("/intake/{session_id}", response_model=SessionSnapshot)
def get_session(
    session_id: str,
    service: IntakeSessionService = Depends(get_intake_service),
) -> SessionSnapshot:
    session = service.get_session(session_id)
    return SessionSnapshot(
        session_id=session.id,
        step=session.step.value,
        patient_name=session.patient_name,
        patient_email=session.patient_email,
        selected_symptoms=session.selected_symptoms,
        follow_up=session.follow_up_form.sections if session.follow_up_form else [],
        created_at=session.created_at,
        updated_at=session.updated_at,
    )


@router.websocket("/chat")
async def chat(websocket: WebSocket, narrator: Narrator = Depends(get_narrator)) -> None:
    """
    Casual conversation between intake steps. Every patient message gets
    one bot reply.
    """
    await websocket.accept()
    try:
        while True:
            message = await websocket.receive_text()
            reply = await narrator.chat_reply(message)
            await websocket.send_json({"type": "bot_message", "text": reply})
    except WebSocketDisconnect:
        logger.debug("Chat websocket closed")

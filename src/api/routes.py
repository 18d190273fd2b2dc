from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError
from sqlalchemy.orm import Session

from src.models.db import get_db_session
from src.models.notification import (
    DeviceRegistration,
    InstallationItem,
    Notification,
    PushRequest,
    PushResponse,
)
from src.notifications.providers import BasePushProvider, PushConfigurationError
from src.notifications.service import (
    InstallationNotFoundError,
    NotificationService,
    UnsupportedDeviceTypeError,
    default_providers,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["push"])


def get_push_providers() -> dict[str, BasePushProvider]:
    try:
        return default_providers()
    except PushConfigurationError as exc:
        logger.error("Push providers are not configured", extra={"error": str(exc)})
        raise HTTPException(status_code=503, detail=str(exc)) from exc


def _notification(raw: dict) -> Notification:
    try:
        return Notification.model_validate(raw)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("/health")
def health() -> dict:
    return {"status": "ok"}


@router.post("/installations", response_model=InstallationItem)
def register_installation(
    payload: DeviceRegistration,
    db: Session = Depends(get_db_session),
):
    service = NotificationService(db=db)
    return InstallationItem.model_validate(service.register_device(payload))


@router.delete("/installations/{installation_id}")
def delete_installation(
    installation_id: int,
    db: Session = Depends(get_db_session),
):
    service = NotificationService(db=db)
    try:
        service.unregister_device(installation_id)
    except InstallationNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"status": "deleted", "id": installation_id}


@router.post("/push", response_model=list[PushResponse])
def push_by_query(
    payload: PushRequest,
    db: Session = Depends(get_db_session),
    providers: dict[str, BasePushProvider] = Depends(get_push_providers),
):
    service = NotificationService(db=db, providers=providers)
    notification = _notification(payload.notification)
    summaries = service.notify_by_query(
        notification,
        app_id=payload.query.app_id,
        user_id=payload.query.user_id,
        device_type=payload.query.device_type,
    )
    return [PushResponse(**summary) for summary in summaries]


@router.post("/push/{installation_id}", response_model=PushResponse)
def push_by_id(
    installation_id: int,
    notification: dict,
    db: Session = Depends(get_db_session),
    providers: dict[str, BasePushProvider] = Depends(get_push_providers),
):
    service = NotificationService(db=db, providers=providers)
    try:
        return PushResponse(**service.notify_by_id(installation_id, _notification(notification)))
    except InstallationNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except UnsupportedDeviceTypeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

"""Depot API router.

Routes are plain ``def`` so FastAPI runs them in its threadpool; key
derivation and storage calls block.
"""
from typing import List

from fastapi import APIRouter, Depends

from keysdepot.dependencies import get_certificate_token, get_vault_service
from keysdepot.domain.depot.models import (
    AlgorithmInfo,
    Certificate,
    DepotKey,
    KeyConfirmation,
    list_algorithms,
)
from keysdepot.domain.depot.service import VaultService
from .schemas import (
    AddKeyRequest,
    CheckKeyRequest,
    CheckKeyResponse,
    DropKeyResponse,
    KeyListResponse,
    UpdateKeyRequest,
)

router = APIRouter()


@router.get("/algorithms", response_model=List[AlgorithmInfo])
def get_algorithms():
    """Supported crypto algorithms, for populating a chooser."""
    return list_algorithms()


@router.get("/certificate", response_model=Certificate)
def get_certificate(
    token: str = Depends(get_certificate_token),
    service: VaultService = Depends(get_vault_service),
):
    return service.get_certificate(token)


@router.get("/keys", response_model=KeyListResponse)
def get_keys(
    token: str = Depends(get_certificate_token),
    service: VaultService = Depends(get_vault_service),
):
    return KeyListResponse(keys=service.get_keys(token))


@router.get("/keys/{key_name}", response_model=DepotKey)
def get_key(
    key_name: str,
    token: str = Depends(get_certificate_token),
    service: VaultService = Depends(get_vault_service),
):
    return service.get_key(token, key_name)


@router.post("/keys", status_code=201, response_model=KeyConfirmation)
def add_key(
    body: AddKeyRequest,
    token: str = Depends(get_certificate_token),
    service: VaultService = Depends(get_vault_service),
):
    return service.add_key(
        token, body.key_name, body.value, body.description, body.password, body.algorithm
    )


@router.put("/keys/{key_name}", response_model=KeyConfirmation)
def update_key(
    key_name: str,
    body: UpdateKeyRequest,
    token: str = Depends(get_certificate_token),
    service: VaultService = Depends(get_vault_service),
):
    return service.update_key(
        token, key_name, body.value, body.description, body.password, body.algorithm
    )


@router.delete("/keys/{key_name}", response_model=DropKeyResponse)
def drop_key(
    key_name: str,
    token: str = Depends(get_certificate_token),
    service: VaultService = Depends(get_vault_service),
):
    return DropKeyResponse(key_name=service.drop_key(token, key_name))


@router.post("/keys/{key_name}/check", response_model=CheckKeyResponse)
def check_key(
    key_name: str,
    body: CheckKeyRequest,
    token: str = Depends(get_certificate_token),
    service: VaultService = Depends(get_vault_service),
):
    return CheckKeyResponse(key_name=key_name, match=service.check_key(token, key_name, body.candidate))

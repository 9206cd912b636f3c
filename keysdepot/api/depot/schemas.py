"""Request/response bodies of the depot API."""
from typing import List, Optional

from pydantic import BaseModel

from keysdepot.domain.depot.models import DepotKey


class AddKeyRequest(BaseModel):
    key_name: str
    value: str
    description: Optional[str] = None
    password: str
    # Wire id ("aes-256") or display label; validated by the service
    algorithm: str


class UpdateKeyRequest(BaseModel):
    value: str
    description: Optional[str] = None
    password: str
    algorithm: str


class CheckKeyRequest(BaseModel):
    candidate: str


class CheckKeyResponse(BaseModel):
    key_name: str
    match: bool


class DropKeyResponse(BaseModel):
    key_name: str


class KeyListResponse(BaseModel):
    keys: List[DepotKey]

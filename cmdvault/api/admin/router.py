"""Admin API Router.

Local management surface for keys, secure values, variables and command
text. Plaintext of secure values is never returned; only ``/resolve`` and
command runs produce substituted text.
"""
import hmac
import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, Field

from cmdvault.dependencies import Container, get_container
from cmdvault.domain.commands.models import Command
from cmdvault.errors import (
    AuthFailure,
    CanonicalizationError,
    DuplicateLabel,
    KeyMissing,
    KeyStoreWriteError,
    LabelNotFound,
    NotFound,
    VaultError,
    raise_vault_error,
)

logger = logging.getLogger(__name__)

router = APIRouter()

STATUS_CODES = {
    NotFound: 404,
    LabelNotFound: 404,
    DuplicateLabel: 409,
    CanonicalizationError: 422,
    KeyMissing: 500,
    AuthFailure: 500,
    KeyStoreWriteError: 503,
}


def _raise(e: VaultError) -> None:
    raise_vault_error(e.code, STATUS_CODES.get(type(e), 400), e.message, e.details or None)


async def require_admin(
    authorization: Optional[str] = Header(None),
    container: Container = Depends(get_container),
) -> None:
    """Bearer token check. Open when no admin token is configured."""
    expected = container.settings.admin_token
    if not expected:
        return
    token = authorization[7:] if authorization and authorization.startswith("Bearer ") else ""
    if not hmac.compare_digest(token.encode(), expected.encode()):
        raise_vault_error("AUTH_INVALID", 401, "Missing or invalid authentication")


# --- Models ---

class SecureValueCreate(BaseModel):
    value: str = Field(..., min_length=1)
    label: Optional[str] = Field(None, min_length=1)


class SecureValueUpdate(BaseModel):
    value: str = Field(..., min_length=1)


class LabelUpdate(BaseModel):
    label: Optional[str] = Field(None, min_length=1)


class VariableUpsert(BaseModel):
    value: str
    label: Optional[str] = Field(None, min_length=1)


class TextRequest(BaseModel):
    text: str


class FieldsRequest(BaseModel):
    fields: Dict[str, str]
    atomic: bool = False


class KeyStatusResponse(BaseModel):
    active_version: int
    versions: List[dict]
    value_count: int
    stale_counts: Dict[int, int]


# --- Keys ---

@router.get("/keys", response_model=KeyStatusResponse, dependencies=[Depends(require_admin)])
async def key_status(container: Container = Depends(get_container)):
    info = container.secure_values.key_info()
    versions = [
        {**kv.model_dump(mode="json"), "material_present": container.key_manager.verify(kv.version)}
        for kv in container.key_manager.list_versions()
    ]
    return KeyStatusResponse(
        active_version=info.active_version,
        versions=versions,
        value_count=info.value_count,
        stale_counts=info.stale_counts,
    )


@router.post("/keys/rotate", dependencies=[Depends(require_admin)])
async def rotate_key(container: Container = Depends(get_container)):
    try:
        version = container.key_manager.rotate()
    except VaultError as e:
        _raise(e)
    return {"active_version": version}


@router.post("/keys/rotate-all", dependencies=[Depends(require_admin)])
async def rotate_all(batch_size: int = 100, container: Container = Depends(get_container)):
    report = container.secure_values.rotate_all_to_current_key(batch_size=batch_size)
    return report.model_dump()


# --- Secure values ---

@router.get("/secure", dependencies=[Depends(require_admin)])
async def list_secure_values(container: Container = Depends(get_container)):
    return {"values": container.secure_values.list_values()}


@router.post("/secure", status_code=201, dependencies=[Depends(require_admin)])
async def create_secure_value(body: SecureValueCreate, container: Container = Depends(get_container)):
    try:
        if body.label:
            ref_id = container.secure_values.with_label(body.value, body.label)
        else:
            ref_id, _ = container.secure_values.encrypt(body.value)
    except VaultError as e:
        _raise(e)
    return {"ref_id": ref_id, "label": body.label}


@router.put("/secure/{ref_id}", dependencies=[Depends(require_admin)])
async def update_secure_value(ref_id: str, body: SecureValueUpdate,
                              container: Container = Depends(get_container)):
    try:
        container.secure_values.update_value(ref_id, body.value)
    except VaultError as e:
        _raise(e)
    return {"ref_id": ref_id, "updated": True}


@router.put("/secure/{ref_id}/label", dependencies=[Depends(require_admin)])
async def label_secure_value(ref_id: str, body: LabelUpdate, container: Container = Depends(get_container)):
    try:
        container.secure_values.set_label(ref_id, body.label)
    except VaultError as e:
        _raise(e)
    return {"ref_id": ref_id, "label": body.label}


@router.delete("/secure/{ref_id}", dependencies=[Depends(require_admin)])
async def delete_secure_value(ref_id: str, container: Container = Depends(get_container)):
    if not container.secure_values.delete(ref_id):
        raise_vault_error(NotFound.code, 404, f"Secure value {ref_id} not found")
    return {"deleted": ref_id}


# --- Variables ---

@router.get("/variables", dependencies=[Depends(require_admin)])
async def list_variables(container: Container = Depends(get_container)):
    return {"variables": [v.model_dump(mode="json") for v in container.variables.list()]}


@router.post("/variables", status_code=201, dependencies=[Depends(require_admin)])
async def create_variable(body: VariableUpsert, container: Container = Depends(get_container)):
    try:
        variable = container.variables.set(body.value, label=body.label)
    except VaultError as e:
        _raise(e)
    return variable.model_dump(mode="json")


@router.put("/variables/{ref_id}", dependencies=[Depends(require_admin)])
async def update_variable(ref_id: str, body: VariableUpsert, container: Container = Depends(get_container)):
    try:
        if body.label is not None:
            container.variables.set_label(ref_id, body.label)
        container.variables.update_value(ref_id, body.value)
    except VaultError as e:
        _raise(e)
    return {"ref_id": ref_id, "updated": True}


@router.delete("/variables/{ref_id}", dependencies=[Depends(require_admin)])
async def delete_variable(ref_id: str, container: Container = Depends(get_container)):
    if not container.variables.delete(ref_id):
        raise_vault_error(NotFound.code, 404, f"Variable {ref_id} not found")
    return {"deleted": ref_id}


# --- Text ---

@router.post("/canonicalize", dependencies=[Depends(require_admin)])
async def canonicalize(body: TextRequest, container: Container = Depends(get_container)):
    try:
        text = container.canonicalizer.canonicalize(body.text)
    except CanonicalizationError as e:
        _raise(e)
    return {"text": text}


@router.post("/canonicalize/fields", dependencies=[Depends(require_admin)])
async def canonicalize_fields(body: FieldsRequest, container: Container = Depends(get_container)):
    result = container.canonicalizer.canonicalize_fields(body.fields, atomic=body.atomic)
    return {
        "fields": result.fields,
        "errors": {name: e.to_dict() for name, e in result.errors.items()},
    }


@router.post("/display", dependencies=[Depends(require_admin)])
async def display(body: TextRequest, container: Container = Depends(get_container)):
    return {"text": container.canonicalizer.to_display(body.text)}


@router.post("/resolve", dependencies=[Depends(require_admin)])
async def resolve(body: TextRequest, container: Container = Depends(get_container)):
    return {"text": await container.engine.resolve(body.text)}


# --- Commands ---

@router.get("/commands", dependencies=[Depends(require_admin)])
async def list_commands(container: Container = Depends(get_container)):
    return {"commands": [c.model_dump(mode="json") for c in container.catalog.list_commands()]}


@router.put("/commands/{command_id}", dependencies=[Depends(require_admin)])
async def save_command(command_id: str, command: Command, container: Container = Depends(get_container)):
    if command.id != command_id:
        raise_vault_error("ID_MISMATCH", 400, "Path id does not match body id")
    saved, result = container.commands.save(command)
    return {
        "saved": saved,
        "fields": result.fields,
        "errors": {name: e.to_dict() for name, e in result.errors.items()},
    }


@router.post("/commands/{command_id}/run", dependencies=[Depends(require_admin)])
async def run_command(command_id: str, container: Container = Depends(get_container)):
    try:
        result = await container.runner.execute(command_id)
    except VaultError as e:
        _raise(e)
    return result.model_dump()

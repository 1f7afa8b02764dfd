"""Credential settings endpoints.

Values are write-only over the API: reads report presence only.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from vulnlens.api.dependencies import get_credentials
from vulnlens.api.schemas import APIResponse, CredentialsUpdate
from vulnlens.credentials import KNOWN_KEYS, CredentialStore

router = APIRouter(prefix="/api/credentials", tags=["credentials"])


@router.get("")
async def credential_status(
    store: CredentialStore = Depends(get_credentials),
) -> APIResponse:
    return APIResponse(success=True, data=store.present())


@router.put("")
async def update_credentials(
    body: CredentialsUpdate,
    store: CredentialStore = Depends(get_credentials),
) -> APIResponse:
    for key, value in body.model_dump(exclude_none=True).items():
        store.set(key, value)
    return APIResponse(success=True, data=store.present())


@router.delete("/{key}")
async def delete_credential(
    key: str,
    store: CredentialStore = Depends(get_credentials),
) -> APIResponse:
    if key not in KNOWN_KEYS:
        return APIResponse(
            success=False, error=f"Unknown credential: {key}"
        )
    removed = store.delete(key)
    return APIResponse(success=True, data={"removed": removed})

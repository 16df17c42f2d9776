# Sentinel Vault - Vault API
#
# RESTful endpoints over the caller's credential vault:
# - GET/POST       /api/passwords
# - GET/PUT/DELETE /api/passwords/{id}
# - GET            /api/password-stats
# - POST           /api/generate-password
#
# Every endpoint requires a session; records of other users are 404.

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from ..services import VaultServices
from ..vault import strength
from .security import Caller, get_services, require_caller

router = APIRouter(prefix="/api", tags=["vault"])

# Request field name -> CredentialVault patch key
_PATCH_FIELDS = {
    "title": "title",
    "username": "site_username",
    "password": "secret",
    "url": "url",
    "notes": "notes",
    "category": "category",
    "is_favorite": "is_favorite",
}


# Request Models
class AddPasswordRequest(BaseModel):
    title: str
    password: str
    username: Optional[str] = None
    url: Optional[str] = None
    notes: Optional[str] = None
    category: Optional[str] = None
    is_favorite: bool = False


class UpdatePasswordRequest(BaseModel):
    title: Optional[str] = None
    password: Optional[str] = None
    username: Optional[str] = None
    url: Optional[str] = None
    notes: Optional[str] = None
    category: Optional[str] = None
    is_favorite: Optional[bool] = None


class GeneratePasswordRequest(BaseModel):
    length: int = 16
    include_uppercase: bool = True
    include_lowercase: bool = True
    include_numbers: bool = True
    include_symbols: bool = True
    passphrase: bool = False
    word_count: int = Field(4, ge=3, le=12)
    separator: str = Field("-", max_length=3)


# Endpoints

@router.get("/passwords")
def list_passwords(
    category: Optional[str] = None,
    favorites: bool = False,
    caller: Caller = Depends(require_caller),
    services: VaultServices = Depends(get_services),
):
    """
    List the caller's credentials, decrypted.

    A record that cannot be decrypted is returned with `password: null`
    and an `error` message instead of failing the whole list.
    """
    records = services.vault.list_records(
        caller.session, category=category, favorites_only=favorites
    )
    return [r.to_dict() for r in records]


@router.post("/passwords", status_code=status.HTTP_201_CREATED)
def add_password(
    body: AddPasswordRequest,
    caller: Caller = Depends(require_caller),
    services: VaultServices = Depends(get_services),
):
    record = services.vault.add_record(
        caller.session,
        title=body.title,
        secret=body.password,
        site_username=body.username,
        url=body.url,
        notes=body.notes,
        category=body.category,
        is_favorite=body.is_favorite,
        ip_address=caller.ip_address,
        user_agent=caller.user_agent,
    )
    return record.to_dict()


@router.get("/passwords/{record_id}")
def get_password(
    record_id: str,
    caller: Caller = Depends(require_caller),
    services: VaultServices = Depends(get_services),
):
    return services.vault.get_record(caller.session, record_id).to_dict()


@router.put("/passwords/{record_id}")
def update_password(
    record_id: str,
    body: UpdatePasswordRequest,
    caller: Caller = Depends(require_caller),
    services: VaultServices = Depends(get_services),
):
    """Partial update: only the fields present in the body change."""
    patch = {_PATCH_FIELDS[k]: v for k, v in body.model_dump(exclude_unset=True).items()}
    record = services.vault.update_record(
        caller.session,
        record_id,
        patch,
        ip_address=caller.ip_address,
        user_agent=caller.user_agent,
    )
    return record.to_dict()


@router.delete("/passwords/{record_id}")
def delete_password(
    record_id: str,
    caller: Caller = Depends(require_caller),
    services: VaultServices = Depends(get_services),
):
    deleted = services.vault.delete_record(
        caller.session,
        record_id,
        ip_address=caller.ip_address,
        user_agent=caller.user_agent,
    )
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Password not found")
    return {"message": "Password deleted successfully"}


@router.get("/password-stats")
def password_stats(
    caller: Caller = Depends(require_caller),
    services: VaultServices = Depends(get_services),
):
    return services.vault.compute_stats(caller.session)


@router.post("/generate-password", dependencies=[Depends(require_caller)])
def generate_password(body: GeneratePasswordRequest):
    """Preview a generated password with its strength score and label."""
    if body.passphrase:
        password = strength.generate_passphrase(body.word_count, body.separator)
    else:
        password = strength.generate_password(
            length=body.length,
            include_uppercase=body.include_uppercase,
            include_lowercase=body.include_lowercase,
            include_numbers=body.include_numbers,
            include_symbols=body.include_symbols,
        )
    value = strength.score(password)
    return {"password": password, "strength": value, "label": strength.strength_label(value)}

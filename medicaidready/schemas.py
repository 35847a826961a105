"""Request payloads accepted by the provider API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ProviderCreateRequest(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    provider_type_code: Optional[str] = None
    jurisdiction_code: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class ChecklistUpdate(BaseModel):
    key: Any = None
    status: Any = None
    notes: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class ChecklistUpdateRequest(BaseModel):
    """Either ``{"items": [...]}`` or a single ``{"key", "status"}`` update."""

    items: List[ChecklistUpdate] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _single_item(cls, data: Any) -> Any:
        if isinstance(data, dict) and not isinstance(data.get("items"), list):
            return {"items": [data]} if data.get("key") else {"items": []}
        return data

    def as_updates(self) -> List[Dict[str, Any]]:
        return [item.model_dump(exclude_none=True) for item in self.items]


class CompleteRequest(BaseModel):
    key: Optional[str] = None
    notes: Optional[str] = None
    completeOnboarding: bool = False

    model_config = ConfigDict(extra="ignore")


class ContactModel(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class OrgModel(BaseModel):
    name: Optional[str] = None
    npi: Optional[str] = None
    medicaidId: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class OnboardUpdateRequest(BaseModel):
    status: Optional[str] = None
    contact: Optional[ContactModel] = None
    org: Optional[OrgModel] = None

    model_config = ConfigDict(extra="ignore")


__all__ = [
    "ChecklistUpdate",
    "ChecklistUpdateRequest",
    "CompleteRequest",
    "ContactModel",
    "OnboardUpdateRequest",
    "OrgModel",
    "ProviderCreateRequest",
]

"""
Shared API Schemas

Pydantic models used by more than one router. JSON keys are camelCase on
the wire and snake_case in Python.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serializing field names as camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MantraResponse(CamelModel):
    """Mantra record as returned to clients."""
    id: int
    title: str | None = None
    description: str | None = None
    visibility: str
    file_path: str | None = None
    filename: str | None = None
    listen_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


class DeleteUserRequest(CamelModel):
    """Request body for account deletion."""
    save_public_mantras_as_benevolent_user: bool = Field(
        False,
        description="Keep public mantras and anonymize the account instead of deleting it",
    )


class DeleteUserResponse(CamelModel):
    """Result of an account deletion."""
    message: str
    user_id: int
    mantras_deleted: int
    eleven_labs_files_deleted: int
    benevolent_user_created: bool

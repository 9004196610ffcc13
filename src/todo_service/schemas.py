from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .models import TodoRecord


# PUBLIC_INTERFACE
class TodoIn(BaseModel):
    """
    Payload accepted by create, update and batch-create.

    Only title and description are read; any id or timestamps sent by the
    client are ignored. Missing fields default to empty strings.
    """

    model_config = ConfigDict(
        extra="ignore",
        json_schema_extra={
            "example": {
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
            }
        },
    )

    title: str = Field(default="", description="Short title for the todo item")
    description: str = Field(default="", description="Free-form description")


TodoInList = TypeAdapter(List[TodoIn])


# PUBLIC_INTERFACE
class TodoOut(BaseModel):
    """
    Schema returned by the API for a Todo item.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": 1,
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
                "created_at": "2025-01-25T10:15:30.123456+00:00",
                "updated_at": "2025-01-26T09:00:00.000001+00:00",
            }
        }
    )

    id: int = Field(..., description="Unique identifier of the todo item")
    title: str = Field(..., description="Short title for the todo item")
    description: str = Field(..., description="Free-form description")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")

    @classmethod
    def from_record(cls, record: TodoRecord) -> "TodoOut":
        return cls(
            id=record.id,
            title=record.title,
            description=record.description,
            created_at=record.audit.created_at,
            updated_at=record.audit.updated_at,
        )


class TokenOut(BaseModel):
    token: str = Field(..., description="Signed identity token, valid for 24 hours")


class MessageOut(BaseModel):
    message: str


class ErrorOut(BaseModel):
    error: str = Field(..., description="Error kind: BadRequest, Unauthorized, NotFound or Internal")
    message: str = Field(..., description="Human-readable description")
    detail: Optional[Any] = None

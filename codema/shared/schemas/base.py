"""Response envelope shared by every router: {success, data, message}."""

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class BaseSchema(BaseModel):
    """Reads ORM objects; accepts field names and aliases."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
    )


class ApiResponse(BaseSchema, Generic[T]):
    success: bool = True
    data: T
    message: str | None = None


class PaginatedResponse(BaseSchema, Generic[T]):
    """One page of a list endpoint; pages is derived from total and limit."""

    items: list[T]
    total: int
    page: int
    limit: int
    pages: int

    @classmethod
    def create(cls, items: list[T], total: int, page: int, limit: int) -> "PaginatedResponse[T]":
        pages = (total + limit - 1) // limit if limit > 0 else 0
        return cls(items=items, total=total, page=page, limit=limit, pages=pages)

from codema.shared.schemas.base import ApiResponse, BaseSchema, PaginatedResponse

__all__ = [
    "ApiResponse",
    "BaseSchema",
    "PaginatedResponse",
]

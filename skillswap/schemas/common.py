"""Response envelope shared by every route: {success, message?, data?, error?}."""
from typing import Any

from pydantic import BaseModel

from skillswap.services.pagination import PageResult


class ErrorBody(BaseModel):
    code: str
    details: Any = None


class ApiResponse(BaseModel):
    success: bool = True
    message: str | None = None
    data: Any = None
    error: ErrorBody | None = None


class Pagination(BaseModel):
    total: int
    page: int
    pages: int
    limit: int

    @classmethod
    def from_result(cls, result: PageResult) -> "Pagination":
        return cls(total=result.total, page=result.page, pages=result.pages, limit=result.limit)


def ok(data: Any = None, message: str | None = None) -> ApiResponse:
    return ApiResponse(success=True, message=message, data=data)


def fail(code: str, message: str, details: Any = None) -> ApiResponse:
    return ApiResponse(success=False, message=message, error=ErrorBody(code=code, details=details))

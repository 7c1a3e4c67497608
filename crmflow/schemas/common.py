"""Response envelopes shared by every route."""

from typing import Generic, Sequence, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    """``{code, message, data}`` envelope; errors use the same shape."""

    code: int = Field(default=0, description="Response code, 0 for success")
    message: str = Field(default="success", description="Response message")
    data: T | None = Field(default=None, description="Response data")


class PaginationParams(BaseModel):
    """Pagination query parameters."""

    page: int = Field(default=1, ge=1, description="Page number")
    page_size: int = Field(default=20, ge=1, le=100, description="Items per page")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def slice(self, items: Sequence[T]) -> list[T]:
        """Current page of an in-memory sequence."""
        return list(items[self.offset:self.offset + self.page_size])


class PaginatedResponse(BaseModel, Generic[T]):
    """Envelope for one page of a list endpoint."""

    code: int = Field(default=0, description="Response code")
    message: str = Field(default="success", description="Response message")
    data: list[T] = Field(default_factory=list, description="Items on this page")
    total: int = Field(default=0, ge=0, description="Items across all pages")
    page: int = Field(default=1, ge=1, description="Current page")
    page_size: int = Field(default=20, ge=1, le=100, description="Page size")
    has_more: bool = Field(default=False, description="Whether a later page exists")

    @classmethod
    def paginate(cls, items: Sequence[T], pagination: PaginationParams) -> "PaginatedResponse[T]":
        """Build the response for the requested page of ``items``."""
        return cls(
            data=pagination.slice(items),
            total=len(items),
            page=pagination.page,
            page_size=pagination.page_size,
            has_more=pagination.offset + pagination.page_size < len(items),
        )

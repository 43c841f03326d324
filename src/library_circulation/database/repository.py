"""
Shared repository plumbing for the circulation data layer.

The asset registry, checkout ledger and hold queue all work inside a session
handed to them by the caller. They flush but never commit: the circulation
engine owns the transaction, so a failed transition leaves nothing behind.

This module holds what they share: pagination types and the session-bound
base class.
"""

from collections.abc import Callable
from typing import Any, Generic, TypeVar

from pydantic import BaseModel
from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from .session import safe_query

ResponseSchemaType = TypeVar("ResponseSchemaType", bound=BaseModel)


class PaginationParams(BaseModel):
    """Standard pagination parameters for list operations."""

    page: int = 1
    page_size: int = 20

    @property
    def offset(self) -> int:
        """Calculate offset for SQL queries."""
        return (self.page - 1) * self.page_size

    def validate_params(self) -> None:
        """Validate pagination parameters."""
        if self.page < 1:
            raise ValueError("Page must be >= 1")
        if self.page_size < 1 or self.page_size > 100:
            raise ValueError("Page size must be between 1 and 100")


class PaginatedResponse(BaseModel, Generic[ResponseSchemaType]):
    """Standard paginated response for list operations."""

    items: list[ResponseSchemaType]
    total: int
    page: int
    page_size: int
    total_pages: int
    has_next: bool
    has_previous: bool


class SessionRepository:
    """Base class for repositories that work inside a caller-owned session."""

    def __init__(self, session: Session):
        """Initialize repository with database session."""
        self.session = session

    def _paginate(
        self,
        query: Select[Any],
        pagination: PaginationParams,
        to_model: Callable[[Any], ResponseSchemaType],
    ) -> PaginatedResponse[ResponseSchemaType]:
        """Run ``query`` one page at a time."""
        pagination.validate_params()

        count_query = select(func.count()).select_from(query.subquery())
        total = (
            safe_query(
                self.session,
                lambda s: s.execute(count_query).scalar(),
                "Failed to count total for pagination",
            )
            or 0
        )

        page_query = query.offset(pagination.offset).limit(pagination.page_size)
        results = safe_query(
            self.session,
            lambda s: s.execute(page_query).scalars().all(),
            "Failed to get paginated results",
        )

        return PaginatedResponse(
            items=[to_model(item) for item in results],
            total=total,
            page=pagination.page,
            page_size=pagination.page_size,
            total_pages=(total + pagination.page_size - 1) // pagination.page_size,
            has_next=pagination.page * pagination.page_size < total,
            has_previous=pagination.page > 1,
        )

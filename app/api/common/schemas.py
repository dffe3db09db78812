"""Page envelopes shared by the record listing endpoints."""

from typing import Generic, List, TypeVar

from pydantic import BaseModel

T = TypeVar('T')


class PaginationMetadata(BaseModel):
    """
    Position of a page within a filtered listing.

    Attributes:
        skip: Rows skipped before this page
        limit: Maximum rows per page
        total: Rows matching the filters, ignoring skip and limit
    """

    skip: int
    limit: int
    total: int


class PaginatedResponse(BaseModel, Generic[T]):
    items: List[T]
    pagination: PaginationMetadata

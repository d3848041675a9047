# utils/query_params.py

from typing import Type, TypeVar, Optional
from fastapi import Query
from sqlalchemy import asc, desc
from sqlalchemy.orm import Query as SAQuery

from utils.errors import ActiveError, ErrorKind

ModelT = TypeVar("ModelT")


class QueryParams:
    """Optional ordering and limit/offset pagination for list endpoints."""

    def __init__(
        self,
        limit: Optional[int] = Query(None, ge=1, le=200),
        offset: Optional[int] = Query(None, ge=0),
        sort_by: str = Query("id"),
        sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    ):
        self.limit = limit
        self.offset = offset
        self.sort_by = sort_by
        self.sort_order = sort_order

    def apply(self, query: SAQuery, model: Type[ModelT]) -> SAQuery:
        # Ordering
        col = getattr(model, self.sort_by, None)
        if col is None or not hasattr(col, "asc"):
            raise ActiveError(ErrorKind.INVALID_DATA, "List", f"invalid sort_by column: {self.sort_by!r}")
        query = query.order_by(asc(col) if self.sort_order == "asc" else desc(col))

        # Pagination only if provided
        if self.offset is not None:
            query = query.offset(self.offset)
        if self.limit is not None:
            query = query.limit(self.limit)

        return query


DEFAULT_PARAMS = QueryParams(limit=None, offset=None, sort_by="id", sort_order="desc")

"""
Response envelope shared by every endpoint: ``{success, message, data?}``.

Error envelopes are produced by the exception classes in
``hospital_meals.business.exceptions``; this module covers the success side.
"""

import math
from typing import Any, Dict, List, Optional

from flask import jsonify
from pydantic import BaseModel, Field

from hospital_meals.utils.json_utils import to_json_compatible


class APIResponse(BaseModel):
    """Standard API response model."""
    success: bool = Field(description="Operation success status")
    message: str = Field(description="Response message")
    data: Optional[Any] = Field(default=None, description="Response data")


class PaginationMeta(BaseModel):
    """Pagination block returned by listing endpoints."""
    currentPage: int
    totalPages: int
    totalResults: int
    limit: int
    hasNextPage: bool
    hasPrevPage: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PaginationMeta":
        total_pages = math.ceil(total / limit) if limit else 0
        return cls(
            currentPage=page,
            totalPages=total_pages,
            totalResults=total,
            limit=limit,
            hasNextPage=page < total_pages,
            hasPrevPage=page > 1,
        )


class PaginatedData(BaseModel):
    items: List[Any]
    pagination: PaginationMeta


def format_api_response(data: Any = None, message: str = "Operation completed successfully",
                        status_code: int = 200):
    """Wrap ``data`` in the success envelope and return a Flask response tuple."""
    response = APIResponse(
        success=status_code < 400,
        message=message,
        data=to_json_compatible(data),
    )
    body = response.model_dump()
    if body["data"] is None:
        del body["data"]
    return jsonify(body), status_code


def format_paginated_response(items: List[Dict[str, Any]], page: int, limit: int, total: int,
                              message: str = "Records retrieved successfully"):
    payload = PaginatedData(
        items=to_json_compatible(items),
        pagination=PaginationMeta.build(page, limit, total),
    )
    return format_api_response(payload.model_dump(), message)

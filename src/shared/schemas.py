"""
FILE: src/shared/schemas.py
Response envelope shared by every router
"""
from pydantic import BaseModel
from typing import Optional, Any


class ResponseModel(BaseModel):
    """Standard response wrapper"""
    success: bool
    message: Optional[str] = None
    data: Optional[Any] = None
    total: Optional[int] = None
    page: Optional[int] = None
    page_size: Optional[int] = None


def paginated(message: str, items: list, total: int, pagination: dict) -> ResponseModel:
    return ResponseModel(
        success=True,
        message=message,
        data=items,
        total=total,
        page=pagination["page"],
        page_size=pagination["page_size"],
    )

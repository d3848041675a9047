# utils/responses.py

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    status: str = "success"
    data: Optional[T] = None
    message: Optional[str] = None


def respond(data: Any = None, message: Optional[str] = None) -> dict:
    return {"status": "success", "data": data, "message": message}

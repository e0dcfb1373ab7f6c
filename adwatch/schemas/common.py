"""Response envelope shared by all endpoints."""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Wraps every successful payload as {status, data}."""

    status: str = "success"
    data: T


from __future__ import annotations

from typing import Generic, Literal, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class DataEnvelope(BaseModel, Generic[T]):
    status: Literal["success"] = "success"
    message: str | None = None
    data: T


class ListEnvelope(BaseModel, Generic[T]):
    status: Literal["success"] = "success"
    results: int
    data: list[T]


def wrap(data: T, message: str | None = None) -> DataEnvelope[T]:
    return DataEnvelope[T](data=data, message=message)


def wrap_list(items: list[T]) -> ListEnvelope[T]:
    return ListEnvelope[T](results=len(items), data=items)

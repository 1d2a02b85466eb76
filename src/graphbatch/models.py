import typing as t

from pydantic import BaseModel, ConfigDict, Field

T = t.TypeVar("T")


class Paging(BaseModel):
    model_config = ConfigDict(extra="ignore")

    previous: str | None = None
    next: str | None = None


class Paged(BaseModel, t.Generic[T]):
    """Paging envelope returned by connection requests such as ``me/friends``."""

    model_config = ConfigDict(extra="ignore")

    data: list[T] = Field(default_factory=list)
    paging: Paging | None = None

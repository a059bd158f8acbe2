"""Protocol shared by the artwork sources."""

from __future__ import annotations

from typing import Any, Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from ..common.errors import ParseError
from ..common.types import ArtOutcome

ModelT = TypeVar("ModelT", bound=BaseModel)


class ArtSource(Protocol):
    name: str

    @property
    def enabled(self) -> bool:
        ...

    async def resolve(self, title: str) -> ArtOutcome:
        ...


def parse_payload(model: type[ModelT], data: Any, url: str) -> ModelT:
    """Validate *data* as *model*, raising :class:`ParseError` on mismatch."""

    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ParseError(
            f"Unexpected {model.__name__} payload from {url}", url=url
        ) from exc


__all__ = ["ArtSource", "parse_payload"]

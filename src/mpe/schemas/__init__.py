"""Pydantic request/response models for the mpe core."""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from mpe.exceptions import InvalidInputError

ModelT = TypeVar("ModelT", bound=BaseModel)


def validate_input(model: type[ModelT], **data: Any) -> ModelT:
    """Build *model* from keyword data, raising InvalidInputError on failure."""
    try:
        return model(**data)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}"
            for err in exc.errors()
        )
        raise InvalidInputError(f"Invalid {model.__name__}: {problems}") from exc

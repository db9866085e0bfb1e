"""Shared helpers for command schemas."""
from typing import Any, Type, TypeVar, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from app.utils.errors import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_command(model: Type[ModelT], data: Union[ModelT, dict, Any]) -> ModelT:
    """
    Coerce service input into ``model``.

    Services accept either a schema instance or a plain dict; anything that
    fails validation is reported as a VALIDATION error before any mutation.
    """
    if type(data) is model:
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Invalid {model.__name__}",
            details={
                "errors": [
                    {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                    for err in e.errors()
                ]
            },
        ) from e

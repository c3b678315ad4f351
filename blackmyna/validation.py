"""
Webhook form decoding and validation.

Field constraints are declared once on the pydantic form models in
schemas.py and evaluated here for every endpoint, so each handler only
deals with already-typed values or a single ValidationError.
"""

import logging
from typing import Any, Mapping, Type, TypeVar

import pydantic
from fastapi import Request

from blackmyna.errors import ValidationError

logger = logging.getLogger(__name__)

FormModel = TypeVar("FormModel", bound=pydantic.BaseModel)

_EMPTY_ERRORS = {"missing", "string_too_short"}
_INTEGER_ERRORS = {"int_parsing", "int_type", "int_from_float"}


async def read_form(request: Request) -> dict:
    """
    Collect webhook fields from the query string and the request body.

    Blackmyna may call back with GET (query string) or POST (urlencoded or
    multipart body). Body values win over query string values.
    """
    data = dict(request.query_params)
    if request.method == "POST":
        form = await request.form()
        for key, value in form.items():
            if isinstance(value, str):
                data[key] = value
    return data


def describe_error(error: Mapping[str, Any]) -> str:
    """Render one pydantic error as a short, vendor-readable message."""
    name = ".".join(str(part) for part in error.get("loc", ())) or "form"
    if error["type"] in _EMPTY_ERRORS:
        return f"field '{name}' is required"
    if error["type"] in _INTEGER_ERRORS:
        return f"field '{name}' must be an integer"
    return f"field '{name}': {error['msg']}"


def decode_and_validate_form(schema: Type[FormModel], data: Mapping[str, Any]) -> FormModel:
    """
    Validate raw form data against a form model.

    Raises:
        ValidationError: listing every failing field
    """
    try:
        return schema.model_validate(dict(data))
    except pydantic.ValidationError as e:
        errors = e.errors()
        fields = [".".join(str(part) for part in err.get("loc", ())) for err in errors]
        message = ", ".join(describe_error(err) for err in errors)
        logger.debug(f"Form validation failed for {schema.__name__}: {message}")
        raise ValidationError(message, fields=fields) from e

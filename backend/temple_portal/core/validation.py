"""Request body parsing that runs after authentication."""

import json
from typing import Type, TypeVar

from fastapi import Request
from pydantic import BaseModel, ValidationError

from temple_portal.core.errors import InvalidInput

ModelT = TypeVar("ModelT", bound=BaseModel)


def describe_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        field = ".".join(str(p) for p in item.get("loc", ()) if p != "body")
        parts.append(f"{field}: {item.get('msg')}" if field else item.get("msg", ""))
    return "; ".join(parts) or "Invalid request body"


async def read_json(request: Request) -> dict:
    """Read the body as a JSON object or raise InvalidInput."""
    try:
        data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidInput("Request body must be valid JSON")

    if not isinstance(data, dict):
        raise InvalidInput("Request body must be a JSON object")

    return data


def validate_body(data: dict, model: Type[ModelT], message: str = None) -> ModelT:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise InvalidInput(message or describe_validation_error(e))


async def parse_body(request: Request, model: Type[ModelT], message: str = None) -> ModelT:
    """
    Read the JSON body and validate it against `model`.

    Handlers call this after their auth dependencies have run, so a caller
    without credentials always gets 401/403 before any body complaint.
    """
    return validate_body(await read_json(request), model, message)

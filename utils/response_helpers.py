"""
Boundary helpers for turning GraphQL arguments into validated service input
"""
from typing import Any, Optional, Type, TypeVar
import dataclasses
import uuid
from pydantic import BaseModel, ValidationError as PydanticValidationError
from strawberry import UNSET

from utils.errors import ValidationError, from_pydantic

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_id(value: Any, label: str = "ID") -> uuid.UUID:
    """Convert an incoming GraphQL ID into a UUID"""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError):
        raise ValidationError(f"Invalid {label} format. Must be a valid UUID.", field=label)


def parse_optional_id(value: Any, label: str = "ID") -> Optional[uuid.UUID]:
    if value is None or value is UNSET:
        return None
    return parse_id(value, label)


def input_to_dict(value: Any) -> Any:
    """
    Recursively convert strawberry input objects into plain dicts,
    dropping fields the client left out (UNSET)
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        result = {}
        for field in dataclasses.fields(value):
            field_value = getattr(value, field.name)
            if field_value is UNSET:
                continue
            result[field.name] = input_to_dict(field_value)
        return result
    elif isinstance(value, list):
        return [input_to_dict(item) for item in value]
    else:
        return value


def validate_input(model_class: Type[ModelT], data: Any) -> ModelT:
    """Validate a strawberry input (or dict) against a pydantic model"""
    if not isinstance(data, dict):
        data = input_to_dict(data)
    try:
        return model_class.model_validate(data)
    except PydanticValidationError as e:
        raise from_pydantic(e)

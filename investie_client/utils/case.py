"""
Key casing for account profile traffic.

The platform stores profile rows in snake_case (``full_name``, ``firebase_uid``)
but expects camelCase request bodies (``fullName``, ``phoneNumber``). Callers may
hand the account store either form, so bodies are normalized here before they
leave the client.
"""
from typing import Any

from pydantic.alias_generators import to_camel, to_snake


def _convert_keys(obj: Any, convert) -> Any:
    if isinstance(obj, dict):
        return {convert(k): _convert_keys(v, convert) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_convert_keys(x, convert) for x in obj]
    return obj


def dict_keys_to_camel(obj: Any) -> Any:
    """Profile form data as a camelCase request body"""
    return _convert_keys(obj, to_camel)


def dict_keys_to_snake(obj: Any) -> Any:
    """Profile fields in the snake_case shape of a stored profile row"""
    return _convert_keys(obj, to_snake)


def strip_empty(data: dict) -> dict:
    """Drop keys whose value was left unset or blank in a form"""
    return {k: v for k, v in data.items() if v is not None and v != ""}

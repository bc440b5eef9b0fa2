"""Helper functions for gateway tool handlers."""

from typing import Any, cast

from uapf_mcp.errors import INVALID_ARGUMENTS, ToolError


def error_payload(code: str, message: str) -> dict[str, Any]:
    return {"error": {"code": code, "message": message}}


def as_payload(result: Any) -> dict[str, Any]:
    """Wrap a non-object engine result so it can carry annotations."""
    if isinstance(result, dict):
        return cast(dict[str, Any], result)
    return {"result": result}


def require_string(arguments: dict[str, Any], key: str) -> str:
    value = arguments.get(key)
    if not isinstance(value, str) or value == "":
        raise ToolError(INVALID_ARGUMENTS, f"Missing required argument: {key}")
    return value


def optional_string(arguments: dict[str, Any], key: str) -> str | None:
    value = arguments.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ToolError(INVALID_ARGUMENTS, f"Argument {key} must be a string")
    return value


def drop_none(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}

from typing import Any, Optional


class MoySkladError(Exception):
    """An error reported by the MoySklad API or raised while talking to it."""

    def __init__(self, message: str, code: Optional[int] = None, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


class ConfigError(MoySkladError):
    """Missing or incomplete MoySklad credentials."""


def parse_api_error(error: Any) -> MoySkladError:
    if isinstance(error, MoySkladError):
        return error
    if isinstance(error, Exception):
        return MoySkladError(str(error))
    return MoySkladError("Unknown error")


def parse_api_error_response(data: Any) -> MoySkladError:
    """
    Builds a MoySkladError from an API error body.

    MoySklad answers failed requests with {"errors": [{"error", "code", "moreInfo"}, ...]};
    only the first entry is kept.
    """
    errors = data.get("errors") if isinstance(data, dict) else None
    first = errors[0] if isinstance(errors, list) and errors else None
    if isinstance(first, dict):
        return MoySkladError(first.get("error", "MoySklad API error"), first.get("code"), first.get("moreInfo"))
    return MoySkladError("MoySklad API error")


def format_error_for_mcp(error: Any) -> str:
    ms_error = parse_api_error(error)
    message = f"Error: {ms_error.message}"
    if ms_error.code:
        message += f" (code: {ms_error.code})"
    if ms_error.details:
        message += f"\nDetails: {ms_error.details}"
    return message

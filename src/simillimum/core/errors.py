"""Domain exceptions shared by the engine, the repositories and the API."""
from __future__ import annotations


class EngineError(Exception):
    status_code = 500

    def __init__(self, code: str, message: str = "") -> None:
        super().__init__(message or code)
        self.code = code


class NotFoundError(EngineError):
    status_code = 404

    def __init__(self, message: str) -> None:
        super().__init__("NOT_FOUND", message)


class ValidationError(EngineError):
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__("VALIDATION_ERROR", message)


class UnauthorizedError(EngineError):
    status_code = 401

    def __init__(self, message: str = "Missing doctor identity") -> None:
        super().__init__("UNAUTHORIZED", message)


class ForbiddenError(EngineError):
    status_code = 403

    def __init__(self, message: str = "Not allowed to act on this case record") -> None:
        super().__init__("FORBIDDEN", message)

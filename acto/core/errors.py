"""
Error kinds raised by the chat core.

Every store and service operation fails with one of these. The HTTP layer maps
them to status codes; the WebSocket gateway maps them to failure
acknowledgments.
"""


class ChatServiceError(Exception):
    """Base exception for all chat core errors."""

    status_code = 500

    def __init__(self, message: str = "Internal server error", code: str = "internal"):
        self.message = message
        self.code = code
        super().__init__(self.message)


class InvalidArgument(ChatServiceError):
    """A required field is missing or empty, or a value is out of range."""

    status_code = 400

    def __init__(self, message: str = "Invalid argument"):
        super().__init__(message, "invalid_argument")


class Conflict(ChatServiceError):
    """An identity with the same handle or contact address already exists."""

    status_code = 400

    def __init__(self, message: str = "Handle or contact address already in use"):
        super().__init__(message, "conflict")


class InvalidCredentials(ChatServiceError):
    status_code = 401

    def __init__(self, message: str = "Invalid handle or password"):
        super().__init__(message, "invalid_credentials")


class InvalidToken(ChatServiceError):
    """Token failed verification or no longer resolves to an identity."""

    status_code = 401

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message, "invalid_token")


class Forbidden(ChatServiceError):
    status_code = 403

    def __init__(self, message: str = "No access to this chat"):
        super().__init__(message, "forbidden")


class NotFound(ChatServiceError):
    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message, "not_found")


class Internal(ChatServiceError):
    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message, "internal")

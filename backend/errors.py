# errors.py — Error taxonomy for the Taskboard API
# Every error carries the HTTP status the API layer maps it to:
# - ValidationFailed / NotFound  → 400
# - Unauthorized / AccessDenied  → 401
# - Session errors               → 401 + session cookie cleared
# - anything else                → 500 with a generic message


class AppError(Exception):
    """Base class for errors the API turns into an envelope response"""
    status_code = 500
    default_message = "An unexpected error occurred."

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ============================================================
# 400: bad input
# ============================================================

class ValidationFailed(AppError):
    """Malformed input, unresolvable parent reference or business-rule violation"""
    status_code = 400
    default_message = "Invalid data."


class NotFound(ValidationFailed):
    default_message = "Record not found."


# ============================================================
# 401: authentication and authorisation
# ============================================================

class Unauthorized(AppError):
    status_code = 401
    default_message = "Unauthorized."


class AccessDenied(Unauthorized):
    """Valid session, but no membership/ownership for the resource"""
    default_message = "You do not have access to this resource."


class SessionError(Unauthorized):
    """Any failure resolving the session cookie; the cookie is cleared"""
    default_message = "Session is not valid."


class TokenMissing(SessionError):
    default_message = "Authorization token is missing."


class TokenInvalid(SessionError):
    default_message = "Invalid token."


class TokenExpired(SessionError):
    default_message = "Token expired."


class SessionExpired(SessionError):
    default_message = "Session has expired or was terminated."

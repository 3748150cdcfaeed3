"""Auth error kinds.

Learn: Each failure an auth operation can end in is its own exception
class. Services raise them, the HTTP layer maps them to a status code
through one exception handler (see main.py). None of them are retried
internally; every one is terminal for the current request.

"Ambiguous" is deliberately missing here: an Account with several Users
is a successful login that needs a follow-up choice, not an error.
"""


class AuthError(Exception):
    """Base class for every auth failure."""

    status_code = 400
    kind = "AuthError"

    def __init__(self, reason: str | None = None):
        self.reason = reason or self.default_reason
        super().__init__(self.reason)

    default_reason = "Authentication failed"


class MalformedInput(AuthError):
    kind = "MalformedInput"
    default_reason = "Request body could not be parsed"


class MissingField(AuthError):
    kind = "MissingField"
    default_reason = "A required field is missing"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"{field} is required")


class InvalidCredentials(AuthError):
    status_code = 401
    kind = "InvalidCredentials"
    default_reason = "Wrong credentials provided"


class NotFound(AuthError):
    status_code = 404
    kind = "NotFound"
    default_reason = "Wrong credentials provided"


class MissingToken(AuthError):
    kind = "MissingToken"
    default_reason = "Could not find a refresh token in the headers, cookie nor request body"


class InvalidToken(AuthError):
    status_code = 401
    kind = "InvalidToken"
    default_reason = "Could not verify token"


class Expired(AuthError):
    status_code = 401
    kind = "Expired"
    default_reason = "Token is expired"


class UnknownUser(AuthError):
    status_code = 404
    kind = "UnknownUser"
    default_reason = "Could not find a user for that token"


class UnknownAccount(AuthError):
    status_code = 404
    kind = "UnknownAccount"
    default_reason = "Could not find the account for that token"


class UnknownToken(AuthError):
    status_code = 404
    kind = "UnknownToken"
    default_reason = "Could not find the token"


class TokenAccountMismatch(AuthError):
    status_code = 403
    kind = "TokenAccountMismatch"
    default_reason = "Token is not associated with this account"


class UnknownAccountForToken(AuthError):
    status_code = 401
    kind = "UnknownAccountForToken"
    default_reason = "Could not find an account which corresponds to that refresh token"


class UsernameTaken(AuthError):
    status_code = 409
    kind = "UsernameTaken"
    default_reason = "Username is already taken"


class InvalidUsername(AuthError):
    kind = "InvalidUsername"
    default_reason = "Username is empty once normalised"


class EmailTaken(AuthError):
    status_code = 409
    kind = "EmailTaken"
    default_reason = "Email already registered"

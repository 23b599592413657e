"""
Domain errors for the shortlink service.

Every error is recoverable: routes turn them into HTTP responses and the
process keeps serving.

    ShortenerError
    ├── ValidationError      InvalidUrl, InvalidCode, InvalidTtl
    ├── ConflictError        DuplicateCode, GenerationExhausted
    ├── EntryLookupError     NotFound, Expired
    ├── AuthError            AuthRejected, AuthUnavailable
    └── GeoLookupError       absorbed by the analytics recorder
"""


class ShortenerError(Exception):
    """Base class for all service errors"""


class ValidationError(ShortenerError):
    """User input defect"""


class InvalidUrl(ValidationError):
    pass


class InvalidCode(ValidationError):
    pass


class InvalidTtl(ValidationError):
    pass


class ConflictError(ShortenerError):
    """Request is valid but clashes with stored state"""


class DuplicateCode(ConflictError):
    def __init__(self, shortcode: str):
        super().__init__(f"Short code '{shortcode}' is already taken")
        self.shortcode = shortcode


class GenerationExhausted(ConflictError):
    def __init__(self, attempts: int):
        super().__init__(
            f"Could not generate unique short code after {attempts} attempts"
        )
        self.attempts = attempts


class EntryLookupError(ShortenerError, LookupError):
    """Resolving a short code failed"""


class NotFound(EntryLookupError):
    def __init__(self, shortcode: str):
        super().__init__(f"Short code '{shortcode}' not found")
        self.shortcode = shortcode


class Expired(EntryLookupError):
    """
    The entry exists but its TTL has passed.

    The entry is kept on the error so callers can still show its metadata;
    it must not be treated as live.
    """

    def __init__(self, entry):
        super().__init__(f"Short code '{entry.shortcode}' has expired")
        self.entry = entry


class AuthError(ShortenerError):
    pass


class AuthRejected(AuthError):
    """The authority refused the credentials or token"""


class AuthUnavailable(AuthError):
    """Transport or service failure; callers may retry"""


class GeoLookupError(ShortenerError):
    pass

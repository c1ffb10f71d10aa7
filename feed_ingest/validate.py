"""Origin URL validation."""

from urllib.parse import urlparse

from .models import ErrorCode, ValidationResult

MAX_URL_LENGTH = 2048


def validate_url(url: str | None) -> ValidationResult:
    """Check that ``url`` is a usable http(s) feed address."""
    if not url or not url.strip():
        return ValidationResult(False, ErrorCode.INVALID_URL, "URL cannot be empty")

    if len(url) > MAX_URL_LENGTH:
        return ValidationResult(
            False,
            ErrorCode.INVALID_URL,
            f"URL is too long (max {MAX_URL_LENGTH} characters)",
        )

    try:
        parsed = urlparse(url.strip())
        # Accessing port validates it
        parsed.port
    except ValueError:
        return ValidationResult(False, ErrorCode.INVALID_URL, "Malformed URL")

    if parsed.scheme.lower() not in ("http", "https"):
        if not parsed.scheme:
            return ValidationResult(False, ErrorCode.INVALID_URL, "Malformed URL")
        return ValidationResult(
            False,
            ErrorCode.INVALID_URL,
            "Only HTTP and HTTPS protocols are allowed",
        )

    if not parsed.hostname:
        return ValidationResult(False, ErrorCode.INVALID_URL, "Malformed URL")

    return ValidationResult(True)

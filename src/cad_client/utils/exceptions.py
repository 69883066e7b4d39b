"""Custom exception classes for CAD Client.

All exceptions inherit from CADClientError to allow catching all custom exceptions.
Transport failures are not wrapped: requests exceptions raised while contacting
the token endpoint or the CAD API propagate to the caller unchanged.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import requests


class CADClientError(Exception):
    """Base exception for all CAD Client custom exceptions."""

    pass


class ValidationError(CADClientError):
    """Raised when input validation fails before any network activity.

    Examples:
        - Empty customer (principal) identifier
        - Non-positive assertion lifetime
        - Unsigned assertion passed to the exchanger
    """

    pass


class ConfigurationError(CADClientError):
    """Raised when configuration loading or validation fails.

    Examples:
        - Missing consumer key or SAML provider ID
        - Invalid configuration file format
        - Configuration value out of range
    """

    pass


class SAMLError(CADClientError):
    """Raised when SAML assertion generation, signing or verification fails."""

    pass


class KeyLoadError(SAMLError):
    """Raised when the signing key cannot be loaded or used.

    Examples:
        - Key file not found
        - PEM data cannot be decoded
        - Key is not an RSA private key
        - Incorrect password for an encrypted key
    """

    pass


class SAMLSigningError(SAMLError):
    """Raised when canonicalization, digesting or signing fails.

    This indicates a construction defect and is not retryable. No partially
    signed assertion is ever returned when this is raised.
    """

    pass


class SignatureVerificationError(SAMLError):
    """Raised when a signed assertion fails verification.

    Examples:
        - Digest mismatch (assertion modified after signing)
        - SignatureValue does not verify against the public key
        - Missing Signature element
    """

    pass


class AuthenticationError(CADClientError):
    """Raised when the token endpoint rejects a signed assertion.

    Carries the HTTP status code and the decoded diagnostic text the endpoint
    returned in its WWW-Authenticate header. Not retryable without correcting
    credentials or configuration.

    Attributes:
        status_code: HTTP status code returned by the token endpoint
        diagnostic: Decoded diagnostic text (may be empty)
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        diagnostic: str = "",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.diagnostic = diagnostic


class APIError(CADClientError):
    """Raised when a CAD API resource request returns a non-200 status.

    Attributes:
        status_code: HTTP status code returned by the API
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class CacheClosedError(CADClientError):
    """Raised when a closed credential cache is used."""

    pass


class ErrorCategory(Enum):
    """Error categorization for caller-side retry policy.

    The exchanger never retries on its own; callers use this categorization
    to decide whether a failed authentication is worth repeating.

    Attributes:
        TRANSIENT: May succeed on retry (timeouts, 5xx, connection resets)
        PERMANENT: Retrying will not help (validation, 4xx, rejected assertion)
        CRITICAL: Configuration or key material is broken, halt immediately
    """

    TRANSIENT = "TRANSIENT"
    PERMANENT = "PERMANENT"
    CRITICAL = "CRITICAL"


@dataclass
class ErrorInfo:
    """Structured error information for actionable error handling.

    Attributes:
        category: Error category (TRANSIENT, PERMANENT, CRITICAL)
        error_type: Exception class name (e.g., "AuthenticationError")
        message: User-friendly error message
        remediation: Actionable guidance for resolving the error
        is_retryable: Whether the caller may retry the operation
        technical_details: Optional technical details for debugging
        principal: Optional customer identifier the failure relates to
    """

    category: ErrorCategory
    error_type: str
    message: str
    remediation: str
    is_retryable: bool
    technical_details: Optional[str] = None
    principal: Optional[str] = None


def categorize_error(exception: Exception) -> ErrorCategory:
    """Categorize exception for retry strategy.

    Args:
        exception: The exception to categorize

    Returns:
        ErrorCategory indicating handling strategy

    Example:
        >>> categorize_error(requests.Timeout("Read timed out"))
        <ErrorCategory.TRANSIENT: 'TRANSIENT'>
        >>> categorize_error(KeyLoadError("bad key"))
        <ErrorCategory.CRITICAL: 'CRITICAL'>
    """
    if isinstance(exception, (KeyLoadError, SAMLSigningError, ConfigurationError)):
        return ErrorCategory.CRITICAL

    if isinstance(exception, requests.exceptions.SSLError):
        return ErrorCategory.CRITICAL

    if isinstance(exception, (requests.Timeout, requests.ConnectionError)):
        return ErrorCategory.TRANSIENT

    if isinstance(exception, (AuthenticationError, APIError)):
        status = exception.status_code
        if status is not None and 500 <= status < 600:
            return ErrorCategory.TRANSIENT
        return ErrorCategory.PERMANENT

    if isinstance(exception, requests.HTTPError):
        if exception.response is not None and 500 <= exception.response.status_code < 600:
            return ErrorCategory.TRANSIENT
        return ErrorCategory.PERMANENT

    return ErrorCategory.PERMANENT


def is_retryable(exception: Exception) -> bool:
    """Return True if a caller may reasonably retry after this exception."""
    return categorize_error(exception) == ErrorCategory.TRANSIENT


def create_error_info(
    exception: Exception,
    principal: Optional[str] = None,
) -> ErrorInfo:
    """Create structured error information from exception.

    Args:
        exception: Exception that occurred
        principal: Optional customer identifier the failure relates to

    Returns:
        ErrorInfo with categorization and remediation guidance
    """
    category = categorize_error(exception)

    technical_details = None
    if exception.__cause__ is not None:
        technical_details = (
            f"Caused by: {type(exception.__cause__).__name__}: {exception.__cause__}"
        )

    return ErrorInfo(
        category=category,
        error_type=type(exception).__name__,
        message=str(exception),
        remediation=_generate_remediation(exception),
        is_retryable=category == ErrorCategory.TRANSIENT,
        technical_details=technical_details,
        principal=principal,
    )


def _generate_remediation(exception: Exception) -> str:
    """Generate actionable remediation message for an error.

    Args:
        exception: Exception that occurred

    Returns:
        Actionable remediation message
    """
    if isinstance(exception, KeyLoadError):
        return (
            "Signing key could not be loaded. Check private_key_path in config.json "
            "(PEM, PKCS#1 or PKCS#8 RSA key) or the CAD_CLIENT_PRIVATE_KEY environment variable."
        )

    if isinstance(exception, SAMLSigningError):
        return (
            "Assertion signing failed. This indicates a construction defect; "
            "report it together with the debug log."
        )

    if isinstance(exception, requests.exceptions.SSLError):
        return (
            "TLS validation failed. Ensure the token endpoint certificate chain is trusted. "
            "Only disable verify_tls against local mock endpoints."
        )

    if isinstance(exception, requests.ConnectionError):
        return (
            "Cannot reach endpoint. Check network connectivity and the token_url / "
            "api_base_url values in config.json."
        )

    if isinstance(exception, requests.Timeout):
        return (
            "Request timed out. Consider increasing timeout_read in config.json "
            "and ensure the assertion lifetime exceeds the exchange latency."
        )

    if isinstance(exception, AuthenticationError):
        return (
            "The token endpoint rejected the assertion. Verify consumer_key, "
            "saml_provider_id and that the signing key matches the certificate "
            "registered with the provider. Check the host clock for skew."
        )

    if isinstance(exception, ValidationError):
        return "Input validation failed. Provide a non-empty customer identifier."

    if isinstance(exception, ConfigurationError):
        return (
            "Configuration error. Check config.json for missing or invalid values. "
            "Use examples/config.example.json as template."
        )

    return "Review the error message and the log file for complete details."

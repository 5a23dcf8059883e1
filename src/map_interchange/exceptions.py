"""
Error taxonomy for feature interchange.

Every error raised by the parsers, serializers and the share codec derives
from ``InterchangeError`` (itself a ``ValueError``) and carries a stable,
machine-readable ``code`` so callers can show a message without inspecting
exception text.

Categories
----------
- ``ParseError``        structurally invalid input (bad XML/JSON/zip, missing
                        ``type`` discriminator). No partial result.
- ``DecodeError``       share-string failures: ``UnsupportedVersionError``,
                        ``CorruptPayloadError``, ``EmptyResultError``.

Conditions that are *not* errors: unsupported geometry types during
explosion, single malformed share records, and colour candidates that fail
validation. Those are skipped (and reported as warnings where useful).
"""


class InterchangeError(ValueError):
    """Base exception for all interchange errors.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code (e.g. ``"PARSE_FAILED"``).
        source_format: Format being processed when the error occurred.
    """

    default_code: str = "INTERCHANGE_FAILED"
    category: str = "interchange"

    def __init__(self, message: str = "", *, code: str = "", source_format: str = "") -> None:
        self.message = message
        self.code = code or self.default_code
        self.source_format = source_format
        super().__init__(message)

    def to_error_dict(self) -> dict[str, str]:
        """Return a structured error payload with stable keys."""
        return {
            "category": self.category,
            "code": self.code,
            "source_format": self.source_format,
            "message": self.message,
        }


class ParseError(InterchangeError):
    """Input could not be parsed at the format level."""

    default_code = "PARSE_FAILED"
    category = "parse"

    @property
    def reason(self) -> str:
        return self.message


class DecodeError(InterchangeError):
    """A share string could not be decoded."""

    default_code = "DECODE_FAILED"
    category = "decode"


class UnsupportedVersionError(DecodeError):
    """The share envelope was written by an incompatible codec version."""

    default_code = "UNSUPPORTED_VERSION"

    def __init__(self, version: object, **kwargs: str) -> None:
        self.version = version
        super().__init__(f"Unsupported data version: {version!r}", **kwargs)


class CorruptPayloadError(DecodeError):
    """Decompression, base64 or JSON decoding failed, or the envelope is malformed."""

    default_code = "CORRUPT_PAYLOAD"


class EmptyResultError(DecodeError):
    """The envelope was well formed but no feature record could be decoded."""

    default_code = "EMPTY_RESULT"

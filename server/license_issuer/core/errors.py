from __future__ import annotations


class LicenseError(Exception):
    """Base class for every failure the issuance engine reports.

    ``code`` is stable and meant for machines; the message is safe to show to
    an operator and never contains key bytes.
    """

    code = "license_error"


class KeyMaterialMissing(LicenseError):
    """Raised when neither a key file nor an environment key is configured."""

    code = "key_missing"


class KeyFormatError(LicenseError):
    """Raised when a key file is not well-formed PEM."""

    code = "key_format"


class KeyParseError(LicenseError):
    """Raised when an environment key cannot be parsed even after reconstruction."""

    code = "key_parse"


class UnsupportedKeyTypeError(LicenseError):
    """Raised when the key parses but is not an RSA private key."""

    code = "key_unsupported"


class InvalidMachineIDError(LicenseError):
    code = "machine_id_invalid"


class DateFormatError(LicenseError):
    code = "date_format"


class ExpiryOutOfRangeError(LicenseError):
    code = "expiry_out_of_range"


class SigningError(LicenseError):
    code = "signing_failed"


class SerializationError(LicenseError):
    code = "serialization_failed"


class TokenDecodeError(LicenseError):
    code = "token_invalid"

from __future__ import annotations

"""Central exception hierarchy"""
class DataProtectionError(Exception):
    """Base exception for all failures raised by this package"""


class ConfigurationError(DataProtectionError):
    """Raised when a required setting is missing or unsafe, before any remote call"""


class CorruptionError(DataProtectionError):
    """Raised when stored content does not match the digest recorded for it"""


class EnvelopeError(DataProtectionError):
    """Base for failures unwrapping an encrypted key envelope"""


class MalformedEnvelopeError(EnvelopeError):
    """Raised when an envelope is missing its ciphertext or it cannot be decoded"""


class ContextMismatchError(EnvelopeError):
    """Raised when the key service rejects a ciphertext for its encryption context

    Two applications sharing a master key but using different discriminators
    end up here, as opposed to a transport failure which propagates unchanged.
    """

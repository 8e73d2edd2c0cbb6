"""Exception types raised by the storegate SDK.

Absence of a claim and policy denials are not errors; they are ordinary
values. Only failures to reach the registry and malformed payloads are.
"""

from __future__ import annotations


class StoreGateError(Exception):
    """Base class for storegate errors."""


class ResolutionError(StoreGateError):
    """The attestation registry could not be consulted."""

    def __init__(self, message: str, subject: str | None = None, schema_id: str | None = None):
        super().__init__(message)
        self.subject = subject
        self.schema_id = schema_id


class ClaimDecodeError(StoreGateError, ValueError):
    """A live claim's payload does not match its schema encoding."""

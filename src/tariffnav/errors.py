"""Error taxonomy for the classification engine.

Only validation failures abort a request.  Resolution gaps, navigation
dead-ends and empty candidate pools are recoverable and are expressed in the
result (questions, capped confidence, ``success=False``) instead of raised.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class TariffNavError(Exception):
    """Base class for every error raised by tariffnav."""


class ConfigurationError(TariffNavError):
    """Invalid configuration: scoring weights, routing table, settings."""


class HierarchyDataError(TariffNavError):
    """Malformed HTS hierarchy data (bad codes, orphan nodes)."""


class OracleUnavailableError(TariffNavError):
    """The classification oracle timed out, failed, or sent a malformed reply."""


class ClassificationFailure(TariffNavError):
    """A request cannot be classified and must not be silently substituted."""

    def __init__(self, message: str, *, detail: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.detail: Dict[str, Any] = dict(detail or {})

    def to_payload(self) -> Dict[str, Any]:
        return {"message": str(self), **self.detail}


class OracleValidationError(ClassificationFailure):
    """The oracle proposed a chapter or heading absent from the hierarchy."""

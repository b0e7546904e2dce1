"""
Domain errors raised by the service layer.

Each class carries the HTTP status it maps to; ``api.main`` registers a
single handler that renders them as ``{"detail": ...}`` like HTTPException.
"""

from dataclasses import dataclass


class WaybillTrackerError(Exception):
    """Base class for classified domain errors."""

    status_code = 500

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_detail(self) -> dict | str:
        if self.field:
            return {"field": self.field, "message": self.message}
        return self.message


class ValidationError(WaybillTrackerError):
    """Missing or malformed input."""

    status_code = 422


class ConflictError(WaybillTrackerError):
    """Uniqueness or state conflict (duplicate waybill number, already closed)."""

    status_code = 409


class NotFoundError(WaybillTrackerError):
    status_code = 404


class PermissionDenied(WaybillTrackerError):
    status_code = 403


class DeliveryFailure(WaybillTrackerError):
    """Outbound webhook call failed. Logged by the dispatcher, never surfaced."""

    status_code = 502


@dataclass(frozen=True)
class ResolutionWarning:
    """A line item whose product name matched nothing in the directory."""

    product_name: str
    waybill_no: str
    message: str = "Product not found; item saved without a product link."

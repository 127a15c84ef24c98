"""Value objects passed between the fulfillment components."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional


@dataclass(frozen=True)
class CatalogVariant:
    """A sellable size/color combination of a blueprint at a print provider."""

    id: int
    size: str = ""
    color: str = ""
    available: bool = True
    price: Optional[Decimal] = None
    attributes: dict = field(default_factory=dict, compare=False, hash=False)

    @classmethod
    def from_provider(cls, data: dict) -> "CatalogVariant":
        options = data.get("options") or data.get("attributes") or {}
        if isinstance(options, list):
            # [{"name": "color", "value": "Black"}, ...]
            options = {
                str(opt.get("name", "")).lower(): opt.get("value")
                for opt in options
                if isinstance(opt, dict)
            }
        available = data.get("available", data.get("is_available", True))
        price = data.get("price")
        return cls(
            id=int(data["id"]),
            size=str(options.get("size") or ""),
            color=str(options.get("color") or ""),
            available=bool(available),
            price=Decimal(str(price)) if price is not None else None,
            attributes=dict(options),
        )


@dataclass
class FulfillmentAttemptResult:
    """Outcome of one ``fulfill(order_id)`` invocation."""

    SUCCESS = "success"
    ALREADY_FULFILLED = "already_fulfilled"
    IN_PROGRESS = "in_progress"
    RETRYABLE = "retryable"
    ERROR = "error"
    NOT_FOUND = "not_found"
    INVALID = "invalid"

    outcome: str
    order_id: str
    provider_order_id: Optional[str] = None
    provider_product_id: Optional[str] = None
    mode: Optional[str] = None
    error_kind: Optional[str] = None
    message: str = ""
    diagnostic: Any = None

    @property
    def success(self) -> bool:
        return self.outcome in (self.SUCCESS, self.ALREADY_FULFILLED)

    @property
    def retryable(self) -> bool:
        return self.outcome in (self.RETRYABLE, self.IN_PROGRESS)

    @classmethod
    def failed(cls, outcome: str, order_id, exc: Exception, **extra) -> "FulfillmentAttemptResult":
        fields = {
            "error_kind": getattr(exc, "kind", type(exc).__name__),
            "message": str(exc),
            "diagnostic": getattr(exc, "body", None),
        }
        fields.update(extra)
        return cls(outcome=outcome, order_id=str(order_id), **fields)

    def as_response(self, fulfillment_status: str = None) -> dict:
        data = {
            "success": self.success,
            "outcome": self.outcome,
            "order_id": self.order_id,
            "fulfillment_reference": self.provider_order_id,
            "status": fulfillment_status,
        }
        if self.provider_product_id:
            data["provider_product_id"] = self.provider_product_id
        if not self.success:
            data["error"] = {"kind": self.error_kind or self.outcome, "message": self.message}
        return data

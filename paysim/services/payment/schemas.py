"""Invoice schemas for the charge endpoint."""

import math
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


MAX_CUSTOMER_ID = 2**64 - 1


def _has_non_finite(value: Any) -> bool:
    if isinstance(value, float):
        return not math.isfinite(value)
    if isinstance(value, dict):
        return any(_has_non_finite(item) for item in value.values())
    if isinstance(value, list):
        return any(_has_non_finite(item) for item in value)
    return False


class Invoice(BaseModel):
    """Charge request payload.

    Decoding is strict: `customer_id` must be a JSON integer and `value` a
    JSON number. Any `result` sent by the caller is dropped with other unknown
    keys.
    """

    model_config = ConfigDict(strict=True, extra="ignore")

    customer_id: int = Field(ge=0, le=MAX_CUSTOMER_ID)
    # Upstream does not serialize currencies yet and sends `{}`; carried as-is.
    currency: dict[str, Any] | None = Field(default_factory=dict)
    value: float = Field(allow_inf_nan=False)

    @field_validator("currency")
    @classmethod
    def _opaque_currency(cls, value: dict[str, Any] | None) -> dict[str, Any]:
        if value is None:
            return {}
        # JSON cannot carry inf/nan back out, so the echo would not be unchanged.
        if _has_non_finite(value):
            raise ValueError("currency must not contain non-finite numbers")
        return value


class ChargedInvoice(Invoice):
    """Invoice echoed back with the simulated charge outcome."""

    result: bool

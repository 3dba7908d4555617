"""Deal payloads and the fixtures the workflow submits."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from dealprobe._internal.errors import DealError

if TYPE_CHECKING:
    from dealprobe._internal.types import DealJson

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"


@dataclass(frozen=True)
class Deal:
    """One FX deal as exchanged with the target service.

    Attributes:
        deal_unique_id: Run-wide unique key.
        from_currency: 3-letter ISO currency code being sold.
        to_currency: 3-letter ISO currency code being bought.
        deal_timestamp: ISO-8601 local timestamp, second precision.
        deal_amount: Positive amount in ``from_currency``.
    """

    deal_unique_id: str
    from_currency: str
    to_currency: str
    deal_timestamp: str
    deal_amount: int | float | Decimal

    def to_json(self) -> DealJson:
        """Return the wire representation with the service's field names."""
        amount = self.deal_amount
        if isinstance(amount, Decimal):
            amount = float(amount)
        return {
            "dealUniqueId": self.deal_unique_id,
            "fromCurrencyIsoCode": self.from_currency,
            "toCurrencyIsoCode": self.to_currency,
            "dealTimestamp": self.deal_timestamp,
            "dealAmount": amount,
        }

    def validate(self, now: datetime | None = None) -> Deal:
        """Apply the target service's acceptance rules locally.

        Args:
            now: Reference time for the not-in-the-future rule.

        Returns:
            ``self``, so calls can be chained.

        Raises:
            DealError: On the first rule the deal violates.
        """
        if not self.deal_unique_id.strip():
            msg = "dealUniqueId is required"
            raise DealError(msg)
        for field_name, code in (
            ("fromCurrencyIsoCode", self.from_currency),
            ("toCurrencyIsoCode", self.to_currency),
        ):
            if len(code) != 3 or not code.isascii() or not code.isalpha():
                msg = f"{field_name} must be 3 letters, got: {code!r}"
                raise DealError(msg)
        if self.from_currency.upper() == self.to_currency.upper():
            msg = "From and To currencies must be different"
            raise DealError(msg)
        if self.deal_amount <= 0:
            msg = f"dealAmount must be greater than 0, got: {self.deal_amount}"
            raise DealError(msg)
        try:
            stamp = datetime.strptime(self.deal_timestamp, TIMESTAMP_FORMAT)
        except ValueError:
            msg = f"dealTimestamp must match {TIMESTAMP_FORMAT}, got: {self.deal_timestamp!r}"
            raise DealError(msg) from None
        if stamp > (now or datetime.now()):
            msg = "dealTimestamp cannot be in the future"
            raise DealError(msg)
        return self


@dataclass(frozen=True)
class DealTemplate:
    """Currency pair and amount reused for every generated deal."""

    from_currency: str
    to_currency: str
    deal_amount: int | float | Decimal
    deal_timestamp: str = "2024-01-01T10:00:00"

    def build(self, deal_unique_id: str) -> Deal:
        return Deal(
            deal_unique_id=deal_unique_id,
            from_currency=self.from_currency,
            to_currency=self.to_currency,
            deal_timestamp=self.deal_timestamp,
            deal_amount=self.deal_amount,
        )


SINGLE_DEAL = DealTemplate("USD", "EUR", 999)

BULK_DEALS = (
    DealTemplate("USD", "EUR", 100),
    DealTemplate("GBP", "USD", 200),
)


def validate_templates(*templates: DealTemplate) -> None:
    """Validate fixtures once, before any load is generated.

    Raises:
        DealError: If any template would be rejected by the target.
    """
    for template in templates:
        template.build("fixture-check").validate()

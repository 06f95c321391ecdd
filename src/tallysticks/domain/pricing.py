"""Settlement price of an invoice.

    price = value / (1 + interest_rate * remaining_term / seconds_in_year)

computed in integer fixed point so that the client produces exactly the
amount the matching program checks for. The invoice value is recorded in
cents; it is first scaled to currency base units, then pre-multiplied by the
interest scale so the discount factor can stay integral.
"""

from __future__ import annotations

from tallysticks.domain.exceptions import ValidationError


def to_currency_units(value_cents: int, currency_decimal_scale: int, usd_cents_scale: int) -> int:
    """Convert an invoice value in cents to currency base units."""
    return value_cents * currency_decimal_scale // usd_cents_scale


def invoice_price(
    value_cents: int,
    interest_rate: int,
    due_date: int,
    bidding_timeout: int,
    *,
    currency_decimal_scale: int,
    usd_cents_scale: int,
    interest_scale: int,
    seconds_in_year: int,
) -> int:
    """Return the discounted price, in currency base units, of an invoice.

    Args:
        value_cents: Face value of the invoice in cents.
        interest_rate: Yearly interest rate, scaled by ``interest_scale``.
        due_date: Unix timestamp the invoice falls due.
        bidding_timeout: Unix timestamp the bidding window closes; the loan
            runs from here to ``due_date``.

    Raises:
        ValidationError: If the term is negative or any input is negative.
    """
    remaining_term = due_date - bidding_timeout
    if remaining_term < 0:
        raise ValidationError(
            f"Invoice falls due ({due_date}) before bidding closes ({bidding_timeout})"
        )
    if value_cents < 0 or interest_rate < 0:
        raise ValidationError("Invoice value and interest rate must be non-negative")

    scaled_value = to_currency_units(value_cents, currency_decimal_scale, usd_cents_scale)
    scaled_value *= interest_scale
    discount = interest_scale + interest_rate * remaining_term // seconds_in_year
    return scaled_value // discount

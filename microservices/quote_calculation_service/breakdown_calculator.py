"""
Breakdown Calculator

Pure landed-cost arithmetic: items + fees + country rules + exchange rates
in, itemized Breakdown out. No I/O.

Every input amount is converted into the selling currency with the rate of
its own currency pair before anything is summed. Internal accumulation keeps
full Decimal precision; money is quantized to 2 places (ROUND_HALF_UP) only
when the Breakdown is emitted.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List, Mapping, Optional, Sequence

from .models import (
    Breakdown,
    CalculationParams,
    ConversionResult,
    CountrySettings,
    Item,
    Money,
    RateSource,
)
from .protocols import ConversionError, InvalidInputError

TWOPLACES = Decimal("0.01")
THREEPLACES = Decimal("0.001")
ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")

FEE_FIELDS = (
    "sales_tax",
    "merchant_shipping",
    "domestic_shipping",
    "handling_charge",
    "insurance_amount",
)


def d(val) -> Decimal:
    """Coerce incoming values to Decimal safely."""
    if isinstance(val, Decimal):
        return val
    return Decimal(str(val))


def round_money(amount: Decimal) -> Decimal:
    """Round half-up to cents."""
    return d(amount).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


# =============================================================================
# Validation
# =============================================================================


def _check_amount(errors: List[str], name: str, value: Optional[Decimal]) -> None:
    if value is None:
        return
    if not value.is_finite():
        errors.append(f"{name} must be a finite number")
    elif value < 0:
        errors.append(f"{name} must not be negative")


def validate_params(params: CalculationParams, items: Optional[Sequence[Item]] = None) -> None:
    """
    Reject malformed numeric input.

    Raises:
        InvalidInputError: listing every offending field
    """
    errors: List[str] = []
    for index, item in enumerate(params.items if items is None else items):
        if item.quantity < 1:
            errors.append(f"items[{index}].quantity must be >= 1")
        _check_amount(errors, f"items[{index}].unit_price", item.unit_price.amount)
        _check_amount(errors, f"items[{index}].weight_kg", item.weight_kg)

    for field_name in FEE_FIELDS + ("discount",):
        _check_amount(errors, field_name, getattr(params, field_name))
    _check_amount(errors, "customs_percentage", params.customs_percentage)
    _check_amount(errors, "international_shipping", params.international_shipping)
    _check_amount(errors, "payment_gateway_fee", params.payment_gateway_fee)

    if errors:
        raise InvalidInputError(errors)


# =============================================================================
# Composition
# =============================================================================


@dataclass(frozen=True)
class _Components:
    """Unrounded breakdown lines in the selling currency"""
    total_item_price: Decimal
    total_item_weight: Decimal
    sales_tax: Decimal
    merchant_shipping: Decimal
    domestic_shipping: Decimal
    handling_charge: Decimal
    insurance_amount: Decimal
    international_shipping: Decimal
    customs_and_ecs: Decimal
    payment_gateway_fee: Decimal
    discount: Decimal
    sub_total: Decimal
    customs_percentage: Decimal


class _Converter:
    """Applies pre-fetched pair rates; never looks anything up itself"""

    def __init__(self, selling_currency: str, rates: Mapping[str, ConversionResult]):
        self.selling_currency = selling_currency
        self.rates = rates

    def rate(self, currency: str) -> Decimal:
        if currency == self.selling_currency:
            return ONE
        result = self.rates.get(currency)
        if result is None:
            raise ConversionError(currency, self.selling_currency, "no rate supplied to calculator")
        return result.rate

    def __call__(self, amount: Decimal, currency: str) -> Decimal:
        if amount == 0:
            return ZERO
        return amount * self.rate(currency)


def _resolve_purchase_currency(params: CalculationParams, purchase_currency: Optional[str]) -> str:
    return (purchase_currency or params.purchase_currency or params.selling_currency).upper()


def _explicit_money(value: Optional[Decimal], currency: str) -> Optional[Money]:
    if value is None:
        return None
    return Money(amount=value, currency=currency)


def _compose(
    items: Sequence[Item],
    params: CalculationParams,
    country_settings: CountrySettings,
    convert: _Converter,
    purchase_currency: str,
    international_shipping: Optional[Money],
    payment_gateway_fee: Optional[Money],
) -> _Components:
    # 1-2. item price and weight
    total_item_price = ZERO
    total_item_weight = ZERO
    for item in items:
        total_item_price += convert(item.unit_price.amount, item.unit_price.currency) * item.quantity
        total_item_weight += item.weight_kg * item.quantity

    # 3. customer-entered flat fees
    fees = {name: convert(getattr(params, name), purchase_currency) for name in FEE_FIELDS}

    shipping = international_shipping
    if shipping is None:
        shipping = _explicit_money(params.international_shipping, purchase_currency)
    shipping_amount = convert(shipping.amount, shipping.currency) if shipping is not None else ZERO

    # 4. customs on item value + international freight
    customs_percentage = (
        params.customs_percentage
        if params.customs_percentage is not None
        else country_settings.customs_percentage_default
    )
    customs = ZERO
    if customs_percentage != 0:
        customs = (total_item_price + shipping_amount) * customs_percentage / HUNDRED

    # 5. gateway fee, resolved outside
    gateway = payment_gateway_fee
    if gateway is None:
        gateway = _explicit_money(params.payment_gateway_fee, purchase_currency)
    gateway_amount = convert(gateway.amount, gateway.currency) if gateway is not None else ZERO

    # 6. discount clamps at the pre-discount total
    pre_discount = (
        total_item_price + sum(fees.values(), ZERO) + shipping_amount + customs + gateway_amount
    )
    discount = min(convert(params.discount, purchase_currency), pre_discount)
    sub_total = max(ZERO, pre_discount - discount)

    return _Components(
        total_item_price=total_item_price,
        total_item_weight=total_item_weight,
        international_shipping=shipping_amount,
        customs_and_ecs=customs,
        payment_gateway_fee=gateway_amount,
        discount=discount,
        sub_total=sub_total,
        customs_percentage=customs_percentage,
        **fees,
    )


def _primary_rate(
    convert: _Converter, purchase_currency: str, items: Iterable[Item]
) -> ConversionResult:
    candidates = [purchase_currency] + [item.unit_price.currency for item in items]
    for currency in candidates:
        if currency != convert.selling_currency and currency in convert.rates:
            return convert.rates[currency]
    return ConversionResult(
        amount=ONE,
        rate=ONE,
        rate_source=RateSource.IDENTITY.value,
        from_currency=convert.selling_currency,
        to_currency=convert.selling_currency,
    )


# =============================================================================
# Public API
# =============================================================================


def pre_fee_total(
    items: Sequence[Item],
    params: CalculationParams,
    country_settings: CountrySettings,
    rates: Optional[Mapping[str, ConversionResult]] = None,
    international_shipping: Optional[Money] = None,
    purchase_currency: Optional[str] = None,
) -> Decimal:
    """
    Sub-total before the payment gateway fee, unrounded, in the selling currency.

    This is the amount a fee schedule charges on.
    """
    validate_params(params, items)
    if not items:
        return ZERO
    convert = _Converter(params.selling_currency, rates or {})
    components = _compose(
        items,
        params,
        country_settings,
        convert,
        _resolve_purchase_currency(params, purchase_currency),
        international_shipping,
        Money(amount=ZERO, currency=params.selling_currency),
    )
    return components.sub_total


def calculate(
    items: Sequence[Item],
    params: CalculationParams,
    country_settings: CountrySettings,
    rates: Optional[Mapping[str, ConversionResult]] = None,
    international_shipping: Optional[Money] = None,
    payment_gateway_fee: Optional[Money] = None,
    shipping_method: Optional[str] = None,
    purchase_currency: Optional[str] = None,
    calculation_timestamp: Optional[datetime] = None,
) -> Breakdown:
    """
    Compute the itemized breakdown.

    Args:
        items: Purchase items (order irrelevant to totals)
        params: Calculation parameters (fees, discount, customs override)
        country_settings: Destination rules (customs default, VAT)
        rates: Conversion into the selling currency, keyed by source currency
        international_shipping: Resolved freight cost; falls back to
            ``params.international_shipping``, then zero
        payment_gateway_fee: Resolved gateway fee; falls back to
            ``params.payment_gateway_fee``, then zero
        shipping_method: Method label stamped into the breakdown
        purchase_currency: Currency of the flat fee fields
        calculation_timestamp: Emission time (defaults to now)

    Returns:
        Breakdown in ``params.selling_currency``

    Raises:
        InvalidInputError: malformed numeric input
        ConversionError: a needed pair rate was not supplied
    """
    validate_params(params, items)

    rates = rates or {}
    purchase = _resolve_purchase_currency(params, purchase_currency)
    convert = _Converter(params.selling_currency, rates)
    timestamp = calculation_timestamp or datetime.now(timezone.utc)
    vat_percentage = country_settings.vat_percentage
    method = shipping_method or params.shipping_method

    if not items:
        return Breakdown(
            currency=params.selling_currency,
            destination_currency=country_settings.currency,
            total_item_price=round_money(ZERO),
            sales_tax_price=round_money(ZERO),
            merchant_shipping_price=round_money(ZERO),
            international_shipping=round_money(ZERO),
            customs_and_ecs=round_money(ZERO),
            domestic_shipping=round_money(ZERO),
            handling_charge=round_money(ZERO),
            insurance_amount=round_money(ZERO),
            discount=round_money(ZERO),
            payment_gateway_fee=round_money(ZERO),
            vat=round_money(ZERO),
            sub_total=round_money(ZERO),
            final_total=round_money(ZERO),
            shipping_method=method,
            total_item_weight=ZERO.quantize(THREEPLACES),
            customs_percentage=(
                params.customs_percentage
                if params.customs_percentage is not None
                else country_settings.customs_percentage_default
            ),
            vat_percentage=vat_percentage,
            calculation_timestamp=timestamp,
        )

    components = _compose(
        items,
        params,
        country_settings,
        convert,
        purchase,
        international_shipping,
        payment_gateway_fee,
    )

    # 7-8. VAT on the clamped sub-total; final total from emitted parts
    vat = components.sub_total * vat_percentage / HUNDRED
    sub_total = round_money(components.sub_total)
    vat = round_money(vat)

    primary = _primary_rate(convert, purchase, items)

    return Breakdown(
        currency=params.selling_currency,
        destination_currency=country_settings.currency,
        total_item_price=round_money(components.total_item_price),
        sales_tax_price=round_money(components.sales_tax),
        merchant_shipping_price=round_money(components.merchant_shipping),
        international_shipping=round_money(components.international_shipping),
        customs_and_ecs=round_money(components.customs_and_ecs),
        domestic_shipping=round_money(components.domestic_shipping),
        handling_charge=round_money(components.handling_charge),
        insurance_amount=round_money(components.insurance_amount),
        discount=round_money(components.discount),
        payment_gateway_fee=round_money(components.payment_gateway_fee),
        vat=vat,
        sub_total=sub_total,
        final_total=sub_total + vat,
        exchange_rate=primary.rate,
        exchange_rate_source=primary.rate_source,
        shipping_method=method,
        total_item_weight=components.total_item_weight.quantize(THREEPLACES, rounding=ROUND_HALF_UP),
        customs_percentage=components.customs_percentage,
        vat_percentage=vat_percentage,
        calculation_timestamp=timestamp,
    )


__all__ = [
    "TWOPLACES",
    "ZERO",
    "d",
    "round_money",
    "validate_params",
    "pre_fee_total",
    "calculate",
]

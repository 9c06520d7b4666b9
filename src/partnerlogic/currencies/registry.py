"""
Static currency registry and display formatting.

Symbols and names come from CLDR through Babel, amounts are rendered in the
``en_US`` locale with whole units, e.g. ``$12,500`` or ``CA$1,235``.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import NamedTuple

from babel import numbers
from moneyed import Currency, get_currency
from moneyed.classes import CurrencyDoesNotExist

DEFAULT_CURRENCY = "USD"
DISPLAY_LOCALE = "en_US"
WHOLE_UNITS_FORMAT = "¤#,##0"


class CurrencyInfo(NamedTuple):
    code: str
    symbol: str
    name: str


REGISTRY_GROUPS: dict[str, tuple[str, ...]] = {
    "Major": ("USD", "EUR", "GBP", "JPY"),
    "Asia Pacific": ("INR", "AUD", "CAD", "CNY", "SGD", "HKD", "MYR", "THB", "KRW"),
    "Gulf": ("AED", "SAR", "QAR", "KWD", "BHD", "OMR"),
    "Other Middle East": ("ILS", "EGP", "JOD", "LBP"),
    "Europe": ("CHF", "SEK", "NOK", "DKK", "PLN"),
    "Americas": ("MXN", "BRL", "ARS", "CLP"),
    "Africa": ("ZAR", "NGN", "KES"),
}
REGISTRY_CODES = tuple(code for group in REGISTRY_GROUPS.values() for code in group)


def resolve_currency(code: str | None) -> Currency:
    """ISO currency for ``code``, US dollars when the code is unknown."""
    try:
        return get_currency((code or "").upper())
    except CurrencyDoesNotExist:
        return get_currency(DEFAULT_CURRENCY)


def get_currency_symbol(code: str | None = DEFAULT_CURRENCY) -> str:
    return numbers.get_currency_symbol(resolve_currency(code).code, locale=DISPLAY_LOCALE)


def get_currency_name(code: str | None = DEFAULT_CURRENCY) -> str:
    return numbers.get_currency_name(resolve_currency(code).code, locale=DISPLAY_LOCALE)


CURRENCIES: dict[str, CurrencyInfo] = {
    code: CurrencyInfo(code, get_currency_symbol(code), get_currency_name(code))
    for code in REGISTRY_CODES
}


def format_currency(amount: Decimal | float | int | None, code: str | None = "USD") -> str:
    """Format ``amount`` with the currency symbol and no decimals.

    Halves round away from zero. A missing amount renders as the symbol
    followed by ``0``. Unknown codes fall back to US dollars.
    """
    currency = resolve_currency(code)
    if amount is None:
        return f"{get_currency_symbol(currency.code)}0"

    rounded = Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return numbers.format_currency(
        rounded,
        currency.code,
        format=WHOLE_UNITS_FORMAT,
        locale=DISPLAY_LOCALE,
        currency_digits=False,
    )


def format_invoice_amount(amount: Decimal, code: str | None) -> str:
    """Amounts with the currency's own precision, e.g. ``$12,500.00``."""
    return numbers.format_currency(amount, resolve_currency(code).code, locale=DISPLAY_LOCALE)


def currency_options() -> list[dict[str, str]]:
    """Choices for currency dropdowns."""
    return [
        {"value": code, "label": f"{code} - {info.name} ({info.symbol})"}
        for code, info in CURRENCIES.items()
    ]

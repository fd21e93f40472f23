"""Currency symbols and display formatting."""

from enum import Enum


class Currency(str, Enum):
    NGN = "NGN"
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"


CURRENCY_SYMBOLS: dict[Currency, str] = {
    Currency.NGN: "₦",
    Currency.USD: "$",
    Currency.EUR: "€",
    Currency.GBP: "£",
}

DEFAULT_CURRENCY = Currency.NGN


def get_currency_symbol(currency: Currency | str = DEFAULT_CURRENCY) -> str:
    return CURRENCY_SYMBOLS[Currency(currency)]


def format_currency(amount: float, currency: Currency | str = DEFAULT_CURRENCY) -> str:
    """
    Render an amount with its symbol, thousands separators and at most two
    decimals, dropping trailing zeros ("₦1,045", "$229.5").
    """
    formatted = f"{amount:,.2f}"
    if "." in formatted:
        formatted = formatted.rstrip("0").rstrip(".")
    return f"{get_currency_symbol(currency)}{formatted}"

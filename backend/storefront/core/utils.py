from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

def ensure_aware(dt):
    """SQLite hands back naive datetimes; every stored timestamp is UTC."""
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt

CURRENCY_SYMBOLS = {"USD": "$", "EUR": "€", "GBP": "£", "CAD": "CA$", "AUD": "A$", "JPY": "¥"}

def format_money(amount: float, currency: str = "USD", decimals: int = 2) -> str:
    """Format an amount the way system messages show it, e.g. "$1,250.00"."""
    currency = (currency or "USD").upper()
    # Half up, like the browser's currency formatter
    quantized = Decimal(str(amount)).quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)
    text = f"{quantized:,.{decimals}f}"
    symbol = CURRENCY_SYMBOLS.get(currency)
    if symbol is None:
        return f"{text} {currency}"
    return f"{symbol}{text}"

"""Cleaning helpers for spreadsheet cell values and column headers."""

from __future__ import annotations

import re
import unicodedata
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_WHITESPACE = re.compile(r"\s+")

DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%Y/%m/%d", "%Y-%m-%d %H:%M:%S")


def normalize_header(value: str | None) -> str:
    """Fold a header to lowercase ASCII letters and digits only.

    ``"Precio Compra"``, ``"precio_compra"`` and ``"precioCompra"`` all become
    ``"preciocompra"``.
    """
    if not value:
        return ""
    decomposed = unicodedata.normalize("NFKD", str(value))
    ascii_only = decomposed.encode("ascii", "ignore").decode("ascii")
    return _NON_ALNUM.sub("", ascii_only.lower())


def normalize_key(value: Any) -> str:
    """Lookup key for names, barcodes and SKUs: trimmed, collapsed, lowercase."""
    if value is None:
        return ""
    return _WHITESPACE.sub(" ", str(value).strip()).lower()


def clean_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def parse_decimal(value: Any) -> Decimal | None:
    """Parse a money-like value; raises ValueError when present but not numeric."""
    text = clean_text(value)
    if text is None:
        return None
    text = text.replace("$", "").replace(" ", "")
    if "," in text and "." not in text:
        text = text.replace(",", ".")
    else:
        text = text.replace(",", "")
    try:
        number = Decimal(text)
    except InvalidOperation as e:
        raise ValueError(f"'{value}' is not a number") from e
    if not number.is_finite():
        raise ValueError(f"'{value}' is not a number")
    return number


def parse_int(value: Any) -> int | None:
    """Parse a whole number; ``"12.0"`` is accepted, ``"12.5"`` is not."""
    number = parse_decimal(value)
    if number is None:
        return None
    if number != number.to_integral_value():
        raise ValueError(f"'{value}' is not a whole number")
    return int(number)


def parse_datetime(value: Any) -> datetime | None:
    """Parse a date cell (native or text) into an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if not text:
            return None
        parsed = None
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            for fmt in DATE_FORMATS:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
        if parsed is None:
            raise ValueError(f"'{value}' is not a recognised date")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed

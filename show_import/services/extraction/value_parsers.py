"""Parsers that turn raw field strings into typed fact payloads."""

import re
from datetime import date
from typing import Iterator, Optional, Tuple

from show_import.models.import_models import (
    DateValue,
    FactType,
    FactValue,
    MoneyValue,
    NumberValue,
    TextValue,
    TimeValue,
)

MONTHS = {
    "jan": 1, "january": 1,
    "feb": 2, "february": 2,
    "mar": 3, "march": 3,
    "apr": 4, "april": 4,
    "may": 5,
    "jun": 6, "june": 6,
    "jul": 7, "july": 7,
    "aug": 8, "august": 8,
    "sep": 9, "sept": 9, "september": 9,
    "oct": 10, "october": 10,
    "nov": 11, "november": 11,
    "dec": 12, "december": 12,
}

_MONTH = r"(jan(?:uary)?|feb(?:ruary)?|mar(?:ch)?|apr(?:il)?|may|june?|july?|aug(?:ust)?|sep(?:t(?:ember)?)?|oct(?:ober)?|nov(?:ember)?|dec(?:ember)?)"
_ORDINAL = r"(?:st|nd|rd|th)?"

# (pattern, group order) where order names which group holds year/month/day
DATE_PATTERNS = [
    (re.compile(r"\b(\d{4})[-/.](\d{1,2})[-/.](\d{1,2})\b"), ("y", "m", "d")),
    (re.compile(rf"\b(\d{{1,2}}){_ORDINAL}\s+{_MONTH}\.?,?\s+(\d{{4}})\b", re.IGNORECASE), ("d", "mon", "y")),
    (re.compile(rf"\b{_MONTH}\.?\s+(\d{{1,2}}){_ORDINAL},?\s+(\d{{4}})\b", re.IGNORECASE), ("mon", "d", "y")),
    (re.compile(r"\b(\d{1,2})\.(\d{1,2})\.(\d{4})\b"), ("d", "m", "y")),
]

TIME_12H = re.compile(r"\b(\d{1,2})(?::([0-5]\d))?(?::([0-5]\d))?\s*([ap])\.?\s?m\.?(?![a-z])", re.IGNORECASE)
TIME_24H = re.compile(r"\b([01]?\d|2[0-3])[:h.]([0-5]\d)(?::([0-5]\d))?\b(?!\.\d)")

CURRENCY_SYMBOLS = {"$": "USD", "€": "EUR", "£": "GBP"}
CURRENCY_CODES = ("USD", "EUR", "GBP", "CAD", "AUD", "SEK", "NOK", "DKK", "CHF")
_AMOUNT = r"\d{1,3}(?:,\d{3})+(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?"
MONEY_PATTERN = re.compile(
    rf"(?P<sym>[$€£])\s?(?P<amt1>{_AMOUNT})"
    rf"|(?P<code1>{'|'.join(CURRENCY_CODES)})\s?(?P<amt2>{_AMOUNT})"
    rf"|(?P<amt3>{_AMOUNT})\s?(?P<code2>{'|'.join(CURRENCY_CODES)})\b"
)
BARE_AMOUNT = re.compile(rf"(?<![\w.])({_AMOUNT})(?![\w])")

EMAIL_PATTERN = re.compile(r"[^\s@<>(),;:\"'\[\]]+@[^\s@<>(),;:\"'\[\]]+\.[A-Za-z]{2,}")
EMAIL_STRICT = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"[+(]?\d[\d\s\-().]{8,}\d")

TIME_FACT_TYPES = {
    FactType.SET_TIME,
    FactType.DOOR_TIME,
    FactType.SHOW_TIME,
    FactType.SOUNDCHECK_TIME,
}
MONEY_FACT_TYPES = {FactType.GUARANTEE, FactType.FEE}
MAX_TEXT_VALUE_LENGTH = 200


def _build_date(parts: dict) -> Optional[str]:
    try:
        month = parts["m"] if "m" in parts else MONTHS[parts["mon"].lower().rstrip(".")]
        return date(int(parts["y"]), int(month), int(parts["d"])).isoformat()
    except (KeyError, ValueError):
        return None


def find_dates(text: str) -> Iterator[Tuple[str, int, int]]:
    """Yield ``(iso_date, start, end)`` for every valid date in ``text``.

    Overlapping matches from later patterns are skipped, so "2025-07-15"
    isn't also read as a DD.MM.YYYY date.
    """
    taken = []
    found = []
    for pattern, order in DATE_PATTERNS:
        for match in pattern.finditer(text):
            start, end = match.span()
            if any(start < t_end and end > t_start for t_start, t_end in taken):
                continue
            iso = _build_date(dict(zip(order, match.groups())))
            if iso:
                taken.append((start, end))
                found.append((iso, start, end))
    yield from sorted(found, key=lambda item: item[1])


def parse_date(value: str) -> Optional[str]:
    """Normalize a date string to ISO ``YYYY-MM-DD``.

    Examples:
        >>> parse_date("Jul 15, 2025")
        '2025-07-15'
        >>> parse_date("15.07.2025")
        '2025-07-15'
    """
    if not value:
        return None
    for iso, _, _ in find_dates(value):
        return iso
    return None


def find_times(text: str) -> Iterator[Tuple[str, int, int]]:
    taken = []
    for match in TIME_12H.finditer(text):
        hour = int(match.group(1))
        if not 1 <= hour <= 12:
            continue
        minute = int(match.group(2) or 0)
        second = int(match.group(3) or 0)
        if match.group(4).lower() == "p" and hour != 12:
            hour += 12
        elif match.group(4).lower() == "a" and hour == 12:
            hour = 0
        taken.append(match.span())
        yield f"{hour:02d}:{minute:02d}:{second:02d}", match.start(), match.end()

    for match in TIME_24H.finditer(text):
        start, end = match.span()
        if any(start < t_end and end > t_start for t_start, t_end in taken):
            continue
        hour, minute = int(match.group(1)), int(match.group(2))
        second = int(match.group(3) or 0)
        yield f"{hour:02d}:{minute:02d}:{second:02d}", start, end


def parse_time(value: str) -> Optional[str]:
    """Normalize a time string to 24h ``HH:MM:SS``.

    Examples:
        >>> parse_time("9:30 PM")
        '21:30:00'
    """
    if not value:
        return None
    for hhmmss, _, _ in find_times(value):
        return hhmmss
    return None


def _to_amount(raw: str) -> float:
    return float(raw.replace(",", ""))


def parse_money(value: str, default_currency: str = "USD") -> Optional[MoneyValue]:
    """Parse an amount like ``$12,500`` or ``5000 EUR``.

    A bare number is accepted and tagged with ``default_currency``.
    """
    if not value:
        return None
    match = MONEY_PATTERN.search(value)
    if match:
        if match.group("sym"):
            return MoneyValue(_to_amount(match.group("amt1")), CURRENCY_SYMBOLS[match.group("sym")])
        if match.group("code1"):
            return MoneyValue(_to_amount(match.group("amt2")), match.group("code1"))
        return MoneyValue(_to_amount(match.group("amt3")), match.group("code2"))

    bare = BARE_AMOUNT.search(value)
    if bare:
        return MoneyValue(_to_amount(bare.group(1)), default_currency)
    return None


def parse_int(value: str) -> Optional[int]:
    match = re.search(r"\d[\d,]*", value or "")
    if not match:
        return None
    return int(match.group(0).replace(",", ""))


def clean_text(value: str) -> Optional[str]:
    text = " ".join((value or "").split()).strip(" -:;,<>()|")
    if not text or len(text) > MAX_TEXT_VALUE_LENGTH:
        return None
    return text


def build_value(fact_type: FactType, raw: str) -> Optional[FactValue]:
    """Turn a raw field string into the payload variant for ``fact_type``.

    Returns None when the string doesn't parse as that type, so callers emit
    no fact rather than a fact with an empty value.
    """
    if raw is None:
        return None
    raw = str(raw)

    if fact_type == FactType.DATE:
        iso = parse_date(raw)
        return DateValue(iso) if iso else None

    if fact_type in TIME_FACT_TYPES:
        hhmmss = parse_time(raw)
        return TimeValue(hhmmss) if hhmmss else None

    if fact_type in MONEY_FACT_TYPES:
        return parse_money(raw)

    if fact_type == FactType.CAPACITY:
        number = parse_int(raw)
        return NumberValue(number) if number is not None else None

    if fact_type == FactType.CONTACT_EMAIL:
        match = EMAIL_PATTERN.search(raw)
        if not match or not EMAIL_STRICT.match(match.group(0)):
            return None
        return TextValue(match.group(0).lower())

    if fact_type == FactType.CONTACT_PHONE:
        match = PHONE_PATTERN.search(raw)
        if not match or sum(ch.isdigit() for ch in match.group(0)) < 7:
            return None
        return TextValue(match.group(0).strip())

    text = clean_text(raw)
    return TextValue(text) if text else None

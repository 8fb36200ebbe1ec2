"""Validators — per-type checks that suppress false positives.

Every validator has the shape ``(value, text, start) -> bool``: ``value`` is
the candidate's semantic content, ``text`` the full original document and
``start`` the candidate's offset in it.  Most checks only look at ``value``;
the date-of-birth, passport and IP heuristics also inspect the surrounding
text.  A False result discards the candidate outright.
"""

from __future__ import annotations
import re
from datetime import date
from typing import Callable

Validator = Callable[[str, str, int], bool]

_DOB_WINDOW = 28
_PASSPORT_WINDOW = 28
_VERSION_WINDOW = 30
_IP_CONTEXT_WINDOW = 50
_MAX_AGE_YEARS = 120

_HEX_GROUP = re.compile(r"[0-9a-fA-F]{1,4}")
_IPV4_TAIL = re.compile(r"\d+\.\d+\.\d+\.\d+$")
_UUID = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}",
    re.IGNORECASE,
)
_UK_POSTCODE = re.compile(
    r"(?:GIR\s?0AA|[A-PR-UWYZ][A-HK-Y]?\d[A-Z\d]?\s?\d[ABD-HJLNP-UW-Z]{2})",
    re.IGNORECASE,
)
_NINO = re.compile(r"[A-Z]{2}\d{6}[A-D]")
_NINO_RESERVED_PREFIXES = frozenset({"BG", "GB", "NK", "KN", "TN", "NT", "ZZ"})
_IBAN = re.compile(r"[A-Z]{2}\d{2}[A-Z0-9]{11,30}")

_API_KEY_PREFIXES = ("sk-", "sk-proj-", "ghp_", "gho_", "ghu_", "ghs_", "ghr_",
                     "AKIA", "ASIA", "xox", "AIza")

_ISO_DATE = re.compile(r"(\d{4})[/-](\d{1,2})[/-](\d{1,2})")
_NUMERIC_DATE = re.compile(r"(\d{1,2})[/-](\d{1,2})[/-](\d{2,4})")
_NAMED_DATE = re.compile(r"(\d{1,2})\s+([A-Za-z]{3,9})\s+(\d{2,4})")
_SHORT_YEAR_DATE = re.compile(r"\b\d{1,2}[/-]\d{1,2}[/-]\d{2}\b")
_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
_DOB_CONTEXT = re.compile(r"\b(?:dob|birth|born|date of birth|birthday)\b")
_PASSPORT_CONTEXT = re.compile(r"\b(?:passport|travel\s*doc|document)\b")

_VERSION_KEYWORDS = [
    re.compile(rf"\b{kw}\b", re.IGNORECASE)
    for kw in ("version", "release", "build", "ver", "rev")
]
_VERSION_PREFIX = re.compile(r"\b[vV]\s+\d")
_IP_KEYWORDS = ("ip", "address", "server", "host", "network", "connect", "ping")


def get_context(text: str, start: int, end: int, window: int = 50) -> str:
    """Slice ``window`` characters either side of [start, end)."""
    return text[max(0, start - window):min(len(text), end + window)]


def _digits(value: str) -> str:
    return re.sub(r"\D", "", value)


# ── Network ──────────────────────────────────────────────────────────

def is_valid_ipv4(value: str, text: str = "", start: int = 0) -> bool:
    parts = value.split(".")
    if len(parts) != 4:
        return False
    return all(p.isdigit() and 0 <= int(p) <= 255 for p in parts)


def is_valid_ipv6(value: str, text: str = "", start: int = 0) -> bool:
    if ":" not in value:
        return False
    if value.count("::") > 1:
        return False
    ip = value
    if _IPV4_TAIL.search(ip):
        head, _, v4 = ip.rpartition(":")
        if not is_valid_ipv4(v4):
            return False
        ip = head
    groups = [g for g in ip.split(":") if g]
    if len(groups) > 8:
        return False
    return all(_HEX_GROUP.fullmatch(g) for g in groups)


def is_valid_ip(value: str, text: str = "", start: int = 0) -> bool:
    """Dispatch on shape: IPv6 when the value has colons, else IPv4."""
    if ":" in value:
        return is_valid_ipv6(value)
    return is_valid_ipv4(value)


def is_likely_version(value: str, text: str, start: int) -> bool:
    """True if a version/build keyword sits near an IPv4-shaped match."""
    ctx_start = max(0, start - _VERSION_WINDOW)
    context = text[ctx_start:min(len(text), start + len(value) + _VERSION_WINDOW)]
    if any(kw.search(context) for kw in _VERSION_KEYWORDS):
        return True
    return bool(_VERSION_PREFIX.search(context[:start - ctx_start + 10]))


def is_likely_ip_address(value: str, text: str, start: int) -> bool:
    """True if IP-ish words appear around the match."""
    context = get_context(text, start, start + len(value), _IP_CONTEXT_WINDOW).lower()
    return any(kw in context for kw in _IP_KEYWORDS)


# ── Financial ────────────────────────────────────────────────────────

def luhn_check(value: str, text: str = "", start: int = 0) -> bool:
    """Luhn checksum over a 13–19 digit card number (spaces/dashes allowed)."""
    stripped = re.sub(r"[- ]", "", value)
    if not stripped.isdigit() or not 13 <= len(stripped) <= 19:
        return False
    checksum = 0
    for i, ch in enumerate(reversed(stripped)):
        digit = int(ch)
        if i % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        checksum += digit
    return checksum % 10 == 0


def is_valid_iban(value: str, text: str = "", start: int = 0) -> bool:
    """ISO 13616 mod-97 check, computed in 7-digit chunks."""
    s = re.sub(r"\s+", "", value).upper()
    if not _IBAN.fullmatch(s):
        return False
    rearranged = s[4:] + s[:4]
    numeric = "".join(str(ord(ch) - 55) if ch.isalpha() else ch for ch in rearranged)
    remainder = 0
    for i in range(0, len(numeric), 7):
        remainder = int(str(remainder) + numeric[i:i + 7]) % 97
    return remainder == 1


def is_valid_routing(value: str, text: str = "", start: int = 0) -> bool:
    """ABA routing number: 3-7-1 weighted digit sum divisible by 10."""
    d = _digits(value)
    if len(d) != 9:
        return False
    n = [int(ch) for ch in d]
    checksum = (3 * (n[0] + n[3] + n[6])
                + 7 * (n[1] + n[4] + n[7])
                + (n[2] + n[5] + n[8]))
    return checksum % 10 == 0


def is_valid_bank_account(value: str, text: str = "", start: int = 0) -> bool:
    return 4 <= len(_digits(value)) <= 17


# ── Identifiers ──────────────────────────────────────────────────────

def is_valid_ein(value: str, text: str = "", start: int = 0) -> bool:
    d = _digits(value)
    if len(d) != 9 or d == "000000000":
        return False
    return 1 <= int(d[:2]) <= 99


def is_valid_nino(value: str, text: str = "", start: int = 0) -> bool:
    """UK National Insurance number: AA 12 34 56 A."""
    s = re.sub(r"\s", "", value).upper()
    if not _NINO.fullmatch(s):
        return False
    if s[:2] in _NINO_RESERVED_PREFIXES:
        return False
    if s[0] in "DFIQUV" or s[1] in "DFIQUVO":
        return False
    return True


def is_valid_uuid(value: str, text: str = "", start: int = 0) -> bool:
    return bool(_UUID.fullmatch(value))


def is_valid_uk_postcode(value: str, text: str = "", start: int = 0) -> bool:
    return bool(_UK_POSTCODE.fullmatch(value.strip()))


def is_valid_api_key(value: str, text: str = "", start: int = 0) -> bool:
    """Reject bare alphanumeric runs (hashes, ids) unless vendor-prefixed."""
    s = value.strip()
    if len(s) < 20 or re.search(r"\s", s):
        return False
    if s.startswith(_API_KEY_PREFIXES):
        return True
    return "_" in s or "-" in s


def is_likely_passport(value: str, text: str, start: int) -> bool:
    s = re.sub(r"\s+", "", value)
    if not re.fullmatch(r"[A-Za-z0-9]{6,9}", s):
        return False
    ctx = get_context(text, start, start + len(value), _PASSPORT_WINDOW).lower()
    if _PASSPORT_CONTEXT.search(ctx):
        return True
    # Without context, any alphanumeric code with a letter still counts
    return any(ch.isalpha() for ch in s)


# ── Dates ────────────────────────────────────────────────────────────

def _full_year(year: int) -> int:
    if year < 100:
        year += 1900 if year >= 30 else 2000
    return year


def parse_flexible_date(raw: str) -> tuple[int, int, int] | None:
    """Parse ISO, M/D/Y (2- or 4-digit year) or "D Mon YYYY" into (y, m, d)."""
    s = raw.strip()
    m = _ISO_DATE.fullmatch(s)
    if m:
        return int(m.group(1)), int(m.group(2)), int(m.group(3))
    m = _NUMERIC_DATE.fullmatch(s)
    if m:
        return _full_year(int(m.group(3))), int(m.group(1)), int(m.group(2))
    m = _NAMED_DATE.fullmatch(s)
    if m:
        month = _MONTHS.get(m.group(2)[:3].lower())
        if month is None:
            return None
        return _full_year(int(m.group(3))), month, int(m.group(1))
    return None


def is_valid_dob(value: str, text: str, start: int, *, today: date | None = None) -> bool:
    """Real calendar date, not in the future, within 120 years.

    Short numeric years ("5/6/85") additionally need a birth keyword nearby.
    """
    parsed = parse_flexible_date(value)
    if parsed is None:
        return False
    year, month, day = parsed
    try:
        dt = date(year, month, day)
    except ValueError:
        return False
    today = today or date.today()
    if dt > today or year < today.year - _MAX_AGE_YEARS:
        return False
    ctx = get_context(text, start, start + len(value), _DOB_WINDOW).lower()
    if not _DOB_CONTEXT.search(ctx) and _SHORT_YEAR_DATE.search(value):
        return False
    return True


# Label → validator.  Labels missing here are accepted on pattern match alone.
VALIDATORS: dict[str, Validator] = {
    "IP_ADDR": is_valid_ip,
    "CREDIT_CARD": luhn_check,
    "API_KEY": is_valid_api_key,
    "IBAN": is_valid_iban,
    "EIN": is_valid_ein,
    "NINO": is_valid_nino,
    "BANK_ROUTING": is_valid_routing,
    "BANK_ACCOUNT_NUM": is_valid_bank_account,
    "UUID": is_valid_uuid,
    "UK_POSTCODE": is_valid_uk_postcode,
    "PASSPORT": is_likely_passport,
    "DATE_OF_BIRTH": is_valid_dob,
}


def validate(label: str, value: str, text: str, start: int) -> bool:
    """Run the label's validator, if it has one."""
    validator = VALIDATORS.get(label)
    if validator is None:
        return True
    return validator(value, text, start)

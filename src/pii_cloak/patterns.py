"""Pattern registry and match collector.

Detectors are compiled once at import time.  ``build_detectors`` only
filters the tables for a configuration, so rebuilding on every settings
change is cheap.  Order matters as the secondary tie-break when two
candidates share a start offset and length: more specific detectors
come first.
"""

from __future__ import annotations
import logging
import re
from collections.abc import Iterable, Mapping

from .types import Candidate, Detector

logger = logging.getLogger(__name__)

_I = re.IGNORECASE

# Domain label without nested ambiguous quantifiers: alnum runs joined by hyphens
_DOMAIN_LABEL = r"[A-Za-z0-9]+(?:-+[A-Za-z0-9]+)*"
_EMAIL_TAIL = r"(?=$|\s|[^\w.]|\d)"

_COUNTRY_CODED = (
    r"44\d{9,11}|1\d{10}|33\d{9}|49\d{9,11}|39\d{8,10}|34\d{9}|61\d{9}|81\d{9,10}"
    r"|86\d{10,11}|91\d{10}|353\d{9}|31\d{9}|46\d{8,9}|47\d{8}|45\d{8}|358\d{8,9}"
    r"|48\d{9}|43\d{10}|41\d{9}|32\d{8}|352\d{9}|64\d{8,10}|27\d{9}|55\d{10,11}"
    r"|52\d{10}|57\d{10}|58\d{10}|51\d{9}|54\d{9,10}|56\d{9}|593\d{8}|598\d{8}"
)

_HEX4 = r"[0-9a-fA-F]{1,4}"

# Each entry: (label, compiled_regex, extraction group or None)
_BASELINE: list[tuple[str, re.Pattern, int | None]] = [
    ("EMAIL", re.compile(
        r"\b[A-Za-z0-9._%+\-]{1,64}@" + _DOMAIN_LABEL
        + r"(?:\." + _DOMAIN_LABEL + r")*\.[A-Za-z]{2,13}" + _EMAIL_TAIL
    ), None),

    # alice [at] example [dot] com
    ("EMAIL_OBFUSCATED", re.compile(
        r"\b[A-Za-z0-9._%+\-]{1,64}\s*(?:\[at\]|\(at\))\s*[A-Za-z0-9.\-]{1,253}"
        r"\s*(?:\[\.\]|\(\.\)|\[dot\]|\(dot\)|\.)\s*[A-Za-z]{2,13}" + _EMAIL_TAIL,
        _I,
    ), None),

    # Vendor-prefixed secrets
    ("API_KEY", re.compile(
        r"\b(?:sk-[A-Za-z0-9]{20,}|sk-proj-[A-Za-z0-9_\-]{20,}|ghp_[A-Za-z0-9]{36,}"
        r"|gho_[A-Za-z0-9_]{20,}|ghu_[A-Za-z0-9_]{20,}|ghs_[A-Za-z0-9_]{20,}"
        r"|ghr_[A-Za-z0-9_]{20,}|AKIA[0-9A-Z]{16}\b|ASIA[0-9A-Z]{16}\b"
        r"|xox[baprs]-[A-Za-z0-9\-]{10,}|(?:sk|pk)_(?:live|test)_[A-Za-z0-9]{24,}"
        r"|AIza[0-9A-Za-z\-_]{35}|VERCEL_[A-Za-z0-9_]{20,}|SUPABASE_[A-Za-z0-9_]{20,}"
        r"|TWILIO_[A-Za-z0-9_]{20,})\b"
    ), None),

    # Credit card: 13–19 digits with optional separators, Luhn-gated later
    ("CREDIT_CARD", re.compile(r"\b(?:\d[ \-]*?){13,19}\b"), None),

    # Amex 4-6-5 grouping
    ("CREDIT_CARD_AMEX", re.compile(r"\b\d{4}[\- ]?\d{6}[\- ]?\d{5}\b"), None),

    ("IBAN", re.compile(r"\b[A-Z]{2}\d{2}(?:\s?[A-Z0-9]){11,30}\b"), None),

    # "routing: 021000021"; token covers the digits only
    ("BANK_ROUTING", re.compile(r"\b(?:routing|aba)[\s:#\-]*(\d{9})\b", _I), 1),
    ("BANK_ACCOUNT_NUM", re.compile(r"\b(?:account|acct)[\s:#\-]*(\d{4,17})\b", _I), 1),

    # SSN (US); 44x prefixes are left to the UK phone pattern
    ("SSN", re.compile(
        r"\b(?!44\d)\d{3}[\- ]?\d{2}[\- ]?\d{4}\b|\b(?!44\d)\d{3}\s+\d{2}\s+\d{4}\b"
    ), None),

    ("EIN", re.compile(r"\b(?!44\d)\d{2}-?\d{7}\b"), None),

    # UK National Insurance number: AB 12 34 56 C
    ("NINO", re.compile(r"\b[A-Z]{2}\s?\d{2}\s?\d{2}\s?\d{2}\s?[A-D]\b", _I), None),

    ("PHONE", re.compile(
        r"(?<!\d)(?:"
        r"\+\d{1,4}[\-.\s]*\d{1,4}[\-.\s]*\d{1,4}[\-.\s]*\d{2,12}"
        r"(?:\s*(?:x|ext\.?|extension)\s*\d{2,6})?"
        r"|(?:" + _COUNTRY_CODED + r")(?!\d)"
        r"|\(?\d{3}\)?[\-.\s]*\d{3}[\-.\s]*\d{4}(?:\s*(?:x|ext\.?)\s*\d{2,6})?"
        r"|0\d{9,11}"
        r"|0\s*\d{3}\s*\d{3}\s*\d{4}"
        r"|1[\-.\s]?\d{3}[\-.\s]?\d{3}[\-.\s]?\d{4}"
        r"|\d{3}[\-.\s]\d{3}[\-.\s]\d{4}"
        r"|1?\d{10}"
        r")(?!\d)"
    ), None),

    # 555 dot 123 dot 4567
    ("PHONE_OBFUSCATED", re.compile(
        r"(?<!\d)(?:\d{3}\s*(?:dot|\.)\s*\d{3}\s*(?:dot|\.)\s*\d{4}"
        r"|\d{4}\s*(?:dot|\.)\s*\d{4}\s*(?:dot|\.)\s*\d{4}\s*(?:dot|\.)\s*\d{4})(?!\d)",
        _I,
    ), None),

    ("IP_ADDR", re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b"), None),

    # Listed before IPv6 so colon-separated MACs are not claimed as addresses
    ("MAC_ADDR", re.compile(
        r"\b(?:[0-9A-Fa-f]{2}[:\-]){5}[0-9A-Fa-f]{2}\b|\b(?:[0-9A-Fa-f]{4}\.){2}[0-9A-Fa-f]{4}\b"
    ), None),

    ("IP_ADDR_V6", re.compile(
        r"(?<![\w:])(?:"
        r"(?:(?:" + _HEX4 + r")?:){2,6}(?:\d{1,3}\.){3}\d{1,3}\b"    # ::ffff:10.0.0.1
        r"|(?:" + _HEX4 + r":){1,6}(?::" + _HEX4 + r"){1,6}\b"      # 2001:db8::1
        r"|(?:" + _HEX4 + r":){1,7}:(?![0-9A-Fa-f:])"               # fe80::
        r"|(?:" + _HEX4 + r":){7}" + _HEX4 + r"\b"                  # all eight groups
        r"|::(?:" + _HEX4 + r":){0,6}" + _HEX4 + r"\b"              # ::1
        r")"
    ), None),

    ("UUID", re.compile(
        r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
    ), None),

    ("DRIVER_LICENSE", re.compile(r"\b(?:DL|ID)\s*[\- ]?[A-Z]{1,2}\d{6,8}\b", _I), None),

    # "passport no. X1234567" extracts the number; bare letter+digit codes also match
    ("PASSPORT", re.compile(
        r"\b(?:passport|pp(?:\s*no\.?)?)\s*[:#\-]?\s*((?=[A-Z]*\d)[A-Z0-9]{6,9})\b"
        r"|\b[A-Z]{1,2}\d{6,8}\b",
        _I,
    ), 1),

    ("DATE_OF_BIRTH", re.compile(
        r"\b(?:\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}|\d{4}[/\-]\d{1,2}[/\-]\d{1,2}"
        r"|\d{1,2}\s+(?:Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)[a-z]*\s+\d{2,4})\b",
        _I,
    ), None),

    ("UK_POSTCODE", re.compile(
        r"\b(?:GIR\s?0AA|[A-PR-UWYZ][A-HK-Y]?\d[A-Z\d]?\s?\d[ABD-HJLNP-UW-Z]{2})\b", _I
    ), None),
]

# Paranoid: broader, noisier detectors appended after the baseline
_PARANOID: list[tuple[str, re.Pattern, int | None]] = [
    ("API_KEY", re.compile(
        r"\b(?:SENDGRID_[A-Za-z0-9_]{20,}|FIREBASE_[A-Za-z0-9_]{20,}"
        r"|[A-Za-z0-9_\-]{24,200}(?:key|secret|token|api)[A-Za-z0-9_\-]*)",
        _I,
    ), None),
    ("SSN", re.compile(r"\b\d{9}\b"), None),
    ("PHONE", re.compile(
        r"(?<!\d)(?:\d{10,11}|44\d{9,11}|1\d{10}|33\d{9}|49\d{9,11}|39\d{8,10}|34\d{9}"
        r"|61\d{9}|81\d{9,10}|86\d{10,11}|91\d{10}|353\d{9})(?!\d)"
    ), None),
]

BASELINE_DETECTORS: tuple[Detector, ...] = tuple(Detector(*row) for row in _BASELINE)
PARANOID_DETECTORS: tuple[Detector, ...] = tuple(Detector(*row) for row in _PARANOID)

# Detector label → toggle key in enabled_labels
LABEL_ALIASES: dict[str, str] = {
    "EMAIL_OBFUSCATED": "EMAIL",
    "CREDIT_CARD_AMEX": "CREDIT_CARD",
    "PHONE_OBFUSCATED": "PHONE",
    "IP_ADDR_V6": "IP_ADDR",
    "BANK_ROUTING": "BANK_ACCOUNT",
    "BANK_ACCOUNT_NUM": "BANK_ACCOUNT",
}

# Obfuscated / sub-variant detector label → label used for tokens
FOLDED_LABELS: dict[str, str] = {
    "EMAIL_OBFUSCATED": "EMAIL",
    "CREDIT_CARD_AMEX": "CREDIT_CARD",
    "PHONE_OBFUSCATED": "PHONE",
    "IP_ADDR_V6": "IP_ADDR",
}

# "ssn: ..." style labels, a lighter scan for values no detector caught
CONTEXT_LABELS: tuple[tuple[re.Pattern, str], ...] = tuple(
    (re.compile(rx + r"\s*[:=]\s*", _I), label)
    for rx, label in [
        (r"\b(?:email|e-mail|e mail)", "EMAIL"),
        (r"\b(?:phone|mobile|tel|telephone|cell)", "PHONE"),
        (r"\b(?:ssn|social\s*security|ss\s*#?)", "SSN"),
        (r"\b(?:card\s*number|credit\s*card|cc\s*#?)", "CREDIT_CARD"),
        (r"\b(?:routing|aba)", "BANK_ROUTING"),
        (r"\b(?:account\s*number|acct)", "BANK_ACCOUNT_NUM"),
        (r"\b(?:api\s*key|secret|apikey)", "API_KEY"),
        (r"\b(?:ein|tax\s*id)", "EIN"),
        (r"\b(?:nino|national\s*insurance)", "NINO"),
        (r"\b(?:passport|passport\s*number|pp\s*no\.?)", "PASSPORT"),
        (r"\b(?:dob|date\s*of\s*birth|born)", "DATE_OF_BIRTH"),
        (r"\b(?:driver'?s?\s*license|driving\s*license|dl|license\s*number)", "DRIVER_LICENSE"),
        (r"\b(?:postcode|postal\s*code|zip)", "UK_POSTCODE"),
    ]
)

_CONTEXT_VALUE = re.compile(r"\s*([A-Za-z0-9\s\-./()+@#:\[\]]{4,80})")

# The obfuscated-email scan only runs when one of these markers is present
_OBFUSCATED_AT = re.compile(r"\[at\]|\(at\)", _I)

# Shortest IBAN in use (Norway)
_IBAN_MIN_LEN = 15

_DEOBFUSCATE = [
    (re.compile(r"\s*\[at\]\s*|\s*\(at\)\s*", _I), "@"),
    (re.compile(r"\s*\[\.\]\s*|\s*\(\.\)\s*|\s*\[dot\]\s*|\s*\(dot\)\s*", _I), "."),
    (re.compile(r"\s*(?<![A-Za-z])dot(?![A-Za-z])\s*", _I), "."),
]


def toggle_key(label: str) -> str:
    """Map a detector label to the enable/disable key that gates it."""
    return LABEL_ALIASES.get(label, label)


def is_enabled(label: str, enabled_labels: Mapping[str, bool] | None) -> bool:
    if not enabled_labels:
        return True
    return enabled_labels.get(toggle_key(label), True) is not False


def build_detectors(
    enabled_labels: Mapping[str, bool] | None = None,
    *,
    paranoid: bool = False,
) -> tuple[Detector, ...]:
    """Return the active detector list for a configuration."""
    pool: Iterable[Detector] = BASELINE_DETECTORS
    if paranoid:
        pool = BASELINE_DETECTORS + PARANOID_DETECTORS
    detectors = tuple(d for d in pool if is_enabled(d.label, enabled_labels))
    logger.debug("Built %d detectors (paranoid=%s)", len(detectors), paranoid)
    return detectors


def deobfuscate(value: str) -> str:
    """Turn "[at]", "(dot)", " dot " and friends back into "@" and "."."""
    for rx, repl in _DEOBFUSCATE:
        value = rx.sub(repl, value)
    return value


# ── Match collection ─────────────────────────────────────────────────

def _iban_prefixes(start: int, raw: str) -> list[Candidate]:
    """Shorter IBAN readings that drop trailing space-separated groups.

    The IBAN pattern happily runs on into a following uppercase word or
    number; if the long reading fails mod-97 the resolver tries these next.
    """
    out: list[Candidate] = []
    for ws in reversed([m.start() for m in re.finditer(r"\s", raw)]):
        prefix = raw[:ws].rstrip()
        if len(re.sub(r"\s", "", prefix)) < _IBAN_MIN_LEN:
            break
        out.append(Candidate(
            start=start, end=start + len(prefix), raw_text=prefix,
            value=prefix, label="IBAN", source="IBAN",
        ))
    return out


def scan_detectors(text: str, detectors: Iterable[Detector]) -> list[Candidate]:
    """Run every detector over the original text, in registry order."""
    candidates: list[Candidate] = []
    has_at = _OBFUSCATED_AT.search(text) is not None
    for det in detectors:
        if det.label == "EMAIL_OBFUSCATED" and not has_at:
            continue
        label = FOLDED_LABELS.get(det.label, det.label)
        for m in det.pattern.finditer(text):
            start, end, raw = m.start(), m.end(), m.group()
            if det.extract_group is not None and m.group(det.extract_group) is not None:
                start, end = m.span(det.extract_group)
                raw = m.group(det.extract_group)
            value = raw
            if det.label in ("EMAIL_OBFUSCATED", "PHONE_OBFUSCATED"):
                value = deobfuscate(raw)
            candidates.append(Candidate(
                start=start,
                end=end,
                raw_text=raw,
                value=value,
                label=label,
                source=det.label,
            ))
            if det.label == "IBAN":
                candidates.extend(_iban_prefixes(start, raw))
    return candidates


def scan_context_labels(
    text: str,
    enabled_labels: Mapping[str, bool] | None = None,
) -> list[Candidate]:
    """Find "label: value" phrases line by line.

    Only the first occurrence of each label phrase per line is used; the
    value is a 4–80 character run up to the end of the line.
    """
    candidates: list[Candidate] = []
    offset = 0
    for line in text.split("\n"):
        for label_rx, label in CONTEXT_LABELS:
            if not is_enabled(label, enabled_labels):
                continue
            m = label_rx.search(line)
            if m is None:
                continue
            vm = _CONTEXT_VALUE.match(line, m.end())
            if vm is None:
                continue
            value = vm.group(1).strip()
            if len(value) < 4:
                continue
            start = offset + vm.start(1) + (len(vm.group(1)) - len(vm.group(1).lstrip()))
            candidates.append(Candidate(
                start=start,
                end=start + len(value),
                raw_text=value,
                value=value,
                label=label,
                source="context",
            ))
        offset += len(line) + 1
    return candidates


def collect_candidates(
    text: str,
    detectors: Iterable[Detector],
    enabled_labels: Mapping[str, bool] | None = None,
) -> list[Candidate]:
    """Detector candidates plus context candidates that no detector overlaps."""
    found = scan_detectors(text, detectors)
    spans = [(c.start, c.end) for c in found]
    for c in scan_context_labels(text, enabled_labels):
        # Detector matches win over label-inferred ones
        if any(c.start < e and c.end > s for s, e in spans):
            continue
        found.append(c)
    logger.debug("Collected %d candidates", len(found))
    return found

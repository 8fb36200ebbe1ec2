"""Core types, label enumeration and the token format."""

from __future__ import annotations
import re
from dataclasses import dataclass, field


# Token format: [CLOAK_TYPE_N]
TOKEN_PREFIX = "CLOAK_"
_TOKEN_FMT = "[" + TOKEN_PREFIX + "{label}_{idx}]"
TOKEN_RE = re.compile(r"\[" + TOKEN_PREFIX + r"([A-Z][A-Z0-9_]*?)_(\d+)\]")

# Closed set of labels a token can carry
LABELS: tuple[str, ...] = (
    "EMAIL", "PHONE", "SSN", "CREDIT_CARD", "API_KEY", "IBAN",
    "BANK_ROUTING", "BANK_ACCOUNT_NUM", "EIN", "NINO", "UUID", "MAC_ADDR",
    "IP_ADDR", "IP_ADDR_V6", "PASSPORT", "DRIVER_LICENSE", "DATE_OF_BIRTH",
    "UK_POSTCODE",
)


@dataclass(frozen=True, slots=True)
class PiiType:
    """Display entry for a toggleable PII type."""
    key: str               # toggle key used in enabled_labels
    label: str             # human-readable name
    category: str          # Contact | Financial | Identifiers | Other


# Toggle keys and display names; keep in lockstep with patterns.LABEL_ALIASES
PII_TYPES: tuple[PiiType, ...] = (
    PiiType("EMAIL", "Email", "Contact"),
    PiiType("PHONE", "Phone numbers", "Contact"),
    PiiType("CREDIT_CARD", "Credit cards", "Financial"),
    PiiType("SSN", "Social Security (SSN)", "Identifiers"),
    PiiType("IP_ADDR", "IP addresses", "Other"),
    PiiType("API_KEY", "API keys", "Other"),
    PiiType("MAC_ADDR", "MAC addresses", "Other"),
    PiiType("IBAN", "IBAN", "Financial"),
    PiiType("BANK_ACCOUNT", "Routing / account numbers", "Financial"),
    PiiType("EIN", "EIN (tax ID)", "Identifiers"),
    PiiType("NINO", "UK NINO", "Identifiers"),
    PiiType("UUID", "UUIDs", "Other"),
    PiiType("PASSPORT", "Passport numbers", "Identifiers"),
    PiiType("DRIVER_LICENSE", "Driver's license", "Identifiers"),
    PiiType("DATE_OF_BIRTH", "Date of birth", "Identifiers"),
    PiiType("UK_POSTCODE", "UK postcodes", "Other"),
)

TOGGLE_KEYS: frozenset[str] = frozenset(t.key for t in PII_TYPES)


@dataclass(frozen=True, slots=True)
class Detector:
    """A compiled pattern producing candidates of one label."""
    label: str
    pattern: re.Pattern
    extract_group: int | None = None


@dataclass(frozen=True, slots=True)
class Candidate:
    """A potential PII match, before acceptance."""
    start: int
    end: int
    raw_text: str          # exact substring to replace
    value: str             # deobfuscated / extracted content
    label: str             # base label, after folding
    source: str            # detector label, or "context"


@dataclass(frozen=True, slots=True)
class AcceptedMatch:
    """A candidate that survived resolution, with its token."""
    candidate: Candidate
    token: str

    @property
    def label(self) -> str:
        return self.candidate.label

    @property
    def start(self) -> int:
        return self.candidate.start

    @property
    def end(self) -> int:
        return self.candidate.end


@dataclass(slots=True)
class CloakResult:
    """Result of anonymizing a document."""
    text: str                                            # text with tokens
    entity_map: dict[str, str] = field(default_factory=dict)  # token → original
    matches: list[AcceptedMatch] = field(default_factory=list)


def format_token(label: str, idx: int) -> str:
    return _TOKEN_FMT.format(label=label, idx=idx)


def parse_token(token: str) -> tuple[str, int] | None:
    """Split a token into (label, index), or None if it is not a token."""
    m = TOKEN_RE.fullmatch(token)
    if m is None:
        return None
    return m.group(1), int(m.group(2))

"""Vault — per-document token assignment and token → value restoration.

Design goals:
  - Consistent: the same normalized value gets one token within a document
  - Collision-free: a minted token never already occurs in the text
  - Lossless: the entity map alone restores the original substrings
"""

from __future__ import annotations
import logging
import re
from collections.abc import Mapping

from .errors import InvalidEntityMapError
from .types import format_token, parse_token

logger = logging.getLogger(__name__)


def normalize_value(label: str, value: str) -> str:
    """Canonical form used to decide whether two matches are the same value."""
    digits = re.sub(r"\D", "", value)
    if label == "SSN" and len(digits) == 9:
        return digits
    if label == "EIN" and len(digits) == 9:
        return f"{digits[:2]}-{digits[2:]}"
    if label == "PHONE" and len(digits) >= 10:
        return digits
    if label == "CREDIT_CARD" and len(digits) >= 13:
        return digits
    if label == "BANK_ROUTING" and len(digits) == 9:
        return digits
    if label == "BANK_ACCOUNT_NUM" and len(digits) >= 4:
        return digits
    if label == "NINO":
        return re.sub(r"\s", "", value).upper()
    return value


class Vault:
    """Token store for a single anonymize call.

    ``known`` is an entity map from earlier calls (e.g. previous messages in
    the same conversation).  Its tokens are reused for equal values and are
    never minted again.
    """

    __slots__ = ("_original", "_known", "_value_to_token", "_entity_map", "_counters")

    def __init__(self, original: str, known: Mapping[str, str] | None = None) -> None:
        self._original = original
        self._known: dict[str, str] = dict(known or {})
        self._value_to_token: dict[str, str] = {}   # normalized value → token
        self._entity_map: dict[str, str] = {}       # token → original text
        self._counters: dict[str, int] = {}

        for token, original_value in self._known.items():
            parsed = parse_token(token)
            if parsed is None:
                continue
            key = normalize_value(parsed[0], original_value)
            self._value_to_token.setdefault(key, token)

    # ------------------------------------------------------------------
    # Core API
    # ------------------------------------------------------------------

    def get_or_create_token(self, label: str, value: str, raw: str, working: str) -> str:
        """Return the token for this value, minting one if it is new.

        ``working`` is the partially rewritten text; a new token must not
        already appear in it or in the original input.
        """
        key = normalize_value(label, value)
        token = self._value_to_token.get(key)
        if token is not None:
            if token not in self._entity_map:
                self._entity_map[token] = self._known[token]
            return token

        count = self._counters.get(label, 1)
        token = format_token(label, count)
        while self._is_taken(token, working):
            count += 1
            token = format_token(label, count)

        self._counters[label] = count + 1
        self._value_to_token[key] = token
        self._entity_map[token] = raw
        return token

    def _is_taken(self, token: str, working: str) -> bool:
        return (
            token in self._entity_map
            or token in self._known
            or token in self._original
            or token in working
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        return len(self._entity_map)

    def dump(self) -> dict[str, str]:
        """Return a copy of the token → original mapping, in minting order."""
        return dict(self._entity_map)


def check_entity_map(entity_map: object) -> Mapping[str, str]:
    """Reject anything that is not a str → str mapping."""
    if not isinstance(entity_map, Mapping):
        raise InvalidEntityMapError(
            f"invalid entity map: expected a mapping, got {type(entity_map).__name__}"
        )
    for token, original in entity_map.items():
        if not isinstance(token, str) or not isinstance(original, str):
            raise InvalidEntityMapError(
                "invalid entity map: keys and values must be strings"
            )
    return entity_map


def restore(text: str, entity_map: Mapping[str, str] | None) -> str:
    """Replace every literal token occurrence with its original value."""
    if entity_map is None:
        return text
    check_entity_map(entity_map)
    if not entity_map:
        return text
    result = text
    # Longest first, so no token can shadow a longer one
    for token in sorted(entity_map, key=len, reverse=True):
        if token in result:
            result = result.replace(token, entity_map[token])
    return result


def count_by_type(entity_map: Mapping[str, str]) -> dict[str, int]:
    """Count tokens per label — safe for audit logs, carries no values."""
    counts: dict[str, int] = {}
    for token in entity_map:
        parsed = parse_token(token)
        label = parsed[0] if parsed else "PII"
        counts[label] = counts.get(label, 0) + 1
    return counts

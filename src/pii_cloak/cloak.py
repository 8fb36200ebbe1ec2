"""Cloak — the main API.  Detect, validate, tokenize, restore.

Usage:
    from pii_cloak import Cloak

    cloak = Cloak()                       # reusable, reentrant
    result = cloak.anonymize("Email me at qa@example.com")
    print(result.text)                    # "Email me at [CLOAK_EMAIL_1]"
    print(result.entity_map)              # {"[CLOAK_EMAIL_1]": "qa@example.com"}

    reply = "Sure, I'll write to [CLOAK_EMAIL_1]."
    print(cloak.deanonymize(reply, result.entity_map))
"""

from __future__ import annotations
import dataclasses
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable

from .patterns import build_detectors, collect_candidates
from .types import AcceptedMatch, Candidate, CloakResult, Detector, TOGGLE_KEYS
from .validators import is_likely_ip_address, is_likely_version, is_valid_ipv4, validate
from .vault import Vault, count_by_type, restore

logger = logging.getLogger(__name__)

_CODE_BLOCK = re.compile(r"```.*?```", re.DOTALL)


@dataclass(frozen=True)
class CloakConfig:
    """Configuration for a Cloak engine.  Immutable; swap it to reconfigure."""
    # Exact raw values that are never tokenized
    ignore_list: frozenset[str] = field(default_factory=frozenset)
    # Suppress IPv4-shaped matches that look like version numbers
    detect_versions: bool = True
    # Toggle key → enabled; missing keys default to enabled, None = all
    enabled_labels: Mapping[str, bool] | None = None
    # Append the broader, noisier detectors
    paranoid_mode: bool = False
    # Leave ``` fenced ``` code blocks untouched
    skip_code_blocks: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "ignore_list", frozenset(self.ignore_list))
        if self.enabled_labels is not None:
            object.__setattr__(
                self, "enabled_labels", MappingProxyType(dict(self.enabled_labels))
            )


@dataclass(frozen=True)
class _Snapshot:
    config: CloakConfig
    detectors: tuple[Detector, ...]


def _build_snapshot(config: CloakConfig) -> _Snapshot:
    if config.enabled_labels:
        unknown = sorted(k for k in config.enabled_labels if k not in TOGGLE_KEYS)
        if unknown:
            logger.warning("Ignoring unknown PII labels in enabled_labels: %s", ", ".join(unknown))
    detectors = build_detectors(config.enabled_labels, paranoid=config.paranoid_mode)
    return _Snapshot(config=config, detectors=detectors)


def _overlaps(start: int, end: int, spans: Iterable[tuple[int, int]]) -> bool:
    return any(start < e and end > s for s, e in spans)


def _is_suppressed_ip(candidate: Candidate, text: str) -> bool:
    """IPv4 match that reads like a version number or lacks address context."""
    if not is_valid_ipv4(candidate.value):
        return False
    if is_likely_version(candidate.value, text, candidate.start):
        return True
    return not is_likely_ip_address(candidate.value, text, candidate.start)


class Cloak:
    """Multi-pattern PII anonymizer.

    Holds one immutable snapshot (config + detectors).  ``configure``
    builds a new snapshot and swaps the reference; an ``anonymize`` call
    already in flight keeps using the snapshot it started with.
    """

    __slots__ = ("_snapshot",)

    def __init__(self, config: CloakConfig | None = None) -> None:
        self._snapshot = _build_snapshot(config or CloakConfig())

    @property
    def config(self) -> CloakConfig:
        return self._snapshot.config

    @property
    def detectors(self) -> tuple[Detector, ...]:
        return self._snapshot.detectors

    def configure(self, config: CloakConfig | None = None, **changes: Any) -> None:
        """Replace the configuration and rebuild the detector list.

        Pass a full ``CloakConfig``, or keyword overrides applied to the
        current one (``configure(paranoid_mode=True)``).
        """
        base = config or self._snapshot.config
        if changes:
            base = dataclasses.replace(base, **changes)
        self._snapshot = _build_snapshot(base)
        logger.debug("Reconfigured: %d detectors", len(self._snapshot.detectors))

    # ------------------------------------------------------------------
    # Anonymize
    # ------------------------------------------------------------------

    def anonymize(self, text: str, known: Mapping[str, str] | None = None) -> CloakResult:
        """Replace PII in text with tokens.

        ``known`` is an entity map from earlier documents whose tokens should
        be reused for equal values.  The returned map holds every token that
        appears in the result.
        """
        if not text or not text.strip():
            return CloakResult(text=text)

        snap = self._snapshot
        cfg = snap.config

        candidates = collect_candidates(text, snap.detectors, cfg.enabled_labels)
        if cfg.skip_code_blocks:
            blocks = [m.span() for m in _CODE_BLOCK.finditer(text)]
            candidates = [c for c in candidates if not _overlaps(c.start, c.end, blocks)]
        if not candidates:
            return CloakResult(text=text)

        # Right to left, longest first; the sort is stable so registry order breaks ties
        ordered = sorted(candidates, key=lambda c: (-c.start, -(c.end - c.start)))
        check_ips = cfg.detect_versions and not cfg.paranoid_mode

        vault = Vault(text, known)
        working = text
        claimed: list[tuple[int, int]] = []
        accepted: list[AcceptedMatch] = []

        for c in ordered:
            if _overlaps(c.start, c.end, claimed):
                continue
            if c.raw_text in cfg.ignore_list:
                continue
            if check_ips and c.label == "IP_ADDR" and _is_suppressed_ip(c, text):
                continue
            if not validate(c.label, c.value, text, c.start):
                continue

            token = vault.get_or_create_token(c.label, c.value, c.raw_text, working)
            # Offsets left of every replaced span are still valid in `working`
            working = working[:c.start] + token + working[c.end:]
            claimed.append((c.start, c.end))
            accepted.append(AcceptedMatch(candidate=c, token=token))

        entity_map = vault.dump()
        if entity_map:
            logger.debug("Anonymized %d match(es): %s", len(accepted), count_by_type(entity_map))
        return CloakResult(text=working, entity_map=entity_map, matches=accepted)

    def anonymize_messages(
        self,
        messages: list[dict],
        known: Mapping[str, str] | None = None,
        *,
        content_key: str = "content",
    ) -> tuple[list[dict], dict[str, str]]:
        """Anonymize a list of chat-format messages with one shared map.

        Returns new message dicts and the combined entity map.  Does NOT
        mutate the originals.
        """
        combined: dict[str, str] = dict(known or {})
        out: list[dict] = []
        for msg in messages:
            content = msg.get(content_key)
            if isinstance(content, str) and content:
                result = self.anonymize(content, combined)
                combined.update(result.entity_map)
                out.append({**msg, content_key: result.text})
            else:
                out.append(msg)
        return out, combined

    # ------------------------------------------------------------------
    # Deanonymize
    # ------------------------------------------------------------------

    def deanonymize(self, text: str, entity_map: Mapping[str, str] | None) -> str:
        """Put original values back in place of their tokens."""
        return restore(text, entity_map)


# Default engine for the module-level helpers; its snapshot is never reconfigured
_default = Cloak()


def anonymize(text: str, known: Mapping[str, str] | None = None) -> CloakResult:
    """Anonymize with the default configuration."""
    return _default.anonymize(text, known)


def deanonymize(text: str, entity_map: Mapping[str, str] | None) -> str:
    """Restore tokens produced by any engine."""
    return restore(text, entity_map)

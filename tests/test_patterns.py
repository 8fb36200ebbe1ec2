"""Tests for the pattern registry and match collection."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from pii_cloak.patterns import (
    BASELINE_DETECTORS, PARANOID_DETECTORS, build_detectors, collect_candidates,
    deobfuscate, scan_context_labels, scan_detectors, toggle_key,
)
from pii_cloak.types import LABELS, PII_TYPES


def _labels(detectors):
    return {d.label for d in detectors}


# ── Registry ─────────────────────────────────────────────────────────

def test_default_detectors_are_baseline():
    assert build_detectors() == BASELINE_DETECTORS


def test_paranoid_appends_extra_detectors():
    detectors = build_detectors(paranoid=True)
    assert len(detectors) == len(BASELINE_DETECTORS) + len(PARANOID_DETECTORS)
    assert detectors[:len(BASELINE_DETECTORS)] == BASELINE_DETECTORS


def test_disable_gates_obfuscated_variants():
    labels = _labels(build_detectors({"EMAIL": False, "PHONE": False}))
    assert "EMAIL" not in labels
    assert "EMAIL_OBFUSCATED" not in labels
    assert "PHONE" not in labels
    assert "PHONE_OBFUSCATED" not in labels
    assert "SSN" in labels


def test_bank_account_toggle_covers_routing_and_account():
    labels = _labels(build_detectors({"BANK_ACCOUNT": False}))
    assert "BANK_ROUTING" not in labels
    assert "BANK_ACCOUNT_NUM" not in labels


def test_disable_applies_to_paranoid_set():
    detectors = build_detectors({"API_KEY": False}, paranoid=True)
    assert "API_KEY" not in _labels(detectors)


def test_toggle_keys_match_display_table():
    keys = {t.key for t in PII_TYPES}
    for d in BASELINE_DETECTORS + PARANOID_DETECTORS:
        assert toggle_key(d.label) in keys
    assert set(LABELS) >= {d.label for d in BASELINE_DETECTORS} - {
        "EMAIL_OBFUSCATED", "CREDIT_CARD_AMEX", "PHONE_OBFUSCATED",
    }


def test_deobfuscate():
    assert deobfuscate("alice [at] example [dot] com") == "alice@example.com"
    assert deobfuscate("bob(at)mail(.)org") == "bob@mail.org"
    assert deobfuscate("555 dot 123 dot 4567") == "555.123.4567"


# ── Detector scan ────────────────────────────────────────────────────

def test_email_detection():
    found = scan_detectors("Contact me at alice@example.com please", BASELINE_DETECTORS)
    emails = [c for c in found if c.label == "EMAIL"]
    assert len(emails) == 1
    assert emails[0].raw_text == "alice@example.com"
    assert emails[0].start == 14


def test_obfuscated_email_folds_to_base_label():
    text = "write alice [at] example [dot] com now"
    found = [c for c in scan_detectors(text, BASELINE_DETECTORS)
             if c.source == "EMAIL_OBFUSCATED"]
    assert len(found) == 1
    assert found[0].label == "EMAIL"
    assert found[0].value == "alice@example.com"
    assert found[0].raw_text == "alice [at] example [dot] com"
    assert text[found[0].start:found[0].end] == found[0].raw_text


def test_labeled_routing_extracts_digits():
    text = "routing: 021000021"
    found = [c for c in scan_detectors(text, BASELINE_DETECTORS) if c.label == "BANK_ROUTING"]
    assert len(found) == 1
    assert (found[0].start, found[0].end) == (9, 18)
    assert found[0].raw_text == "021000021"


def test_passport_label_extracts_number():
    text = "pp no. X1234567"
    found = [c for c in scan_detectors(text, BASELINE_DETECTORS) if c.label == "PASSPORT"]
    assert [c.raw_text for c in found] == ["X1234567"]


def test_ipv6_folds_to_ip_label():
    text = "ping host 2001:db8::1"
    found = [c for c in scan_detectors(text, BASELINE_DETECTORS) if c.source == "IP_ADDR_V6"]
    assert len(found) == 1
    assert found[0].label == "IP_ADDR"
    assert found[0].raw_text == "2001:db8::1"


def test_mac_is_not_claimed_as_ipv6():
    found = scan_detectors("mac 00:1A:2B:3C:4D:5E", BASELINE_DETECTORS)
    assert [c.label for c in found] == ["MAC_ADDR"]


# ── Context labels ───────────────────────────────────────────────────

def test_context_label_capture():
    found = scan_context_labels("ssn: 123-45-6789")
    assert len(found) == 1
    assert found[0].label == "SSN"
    assert found[0].start == 5
    assert found[0].raw_text == "123-45-6789"
    assert found[0].source == "context"


def test_context_label_offsets_on_later_lines():
    text = "name: x\nphone: call me later"
    found = scan_context_labels(text)
    assert len(found) == 1
    c = found[0]
    assert c.label == "PHONE"
    assert text[c.start:c.end] == "call me later"


def test_context_label_too_short_is_ignored():
    assert scan_context_labels("email: ab") == []


def test_context_label_respects_toggles():
    assert scan_context_labels("ssn: 123-45-6789", {"SSN": False}) == []


def test_detector_matches_win_over_context_labels():
    found = collect_candidates("ssn: 123-45-6789", BASELINE_DETECTORS)
    assert [c.source for c in found if c.label == "SSN"] == ["SSN"]


def test_context_label_used_when_no_detector_matches():
    found = collect_candidates("email: john at example", BASELINE_DETECTORS)
    assert len(found) == 1
    assert found[0].label == "EMAIL"
    assert found[0].raw_text == "john at example"


# ── IBAN readings ────────────────────────────────────────────────────

def test_iban_also_offers_shorter_readings():
    text = "GB29NWBK60161331926819 2001:db8::1"
    found = [c.raw_text for c in scan_detectors(text, BASELINE_DETECTORS) if c.label == "IBAN"]
    assert found == ["GB29NWBK60161331926819 2001", "GB29NWBK60161331926819"]


def test_iban_short_readings_stop_at_minimum_length():
    text = "GB29 NWBK 6016 1331 9268 19"
    found = [c.raw_text for c in scan_detectors(text, BASELINE_DETECTORS) if c.label == "IBAN"]
    assert found == [
        "GB29 NWBK 6016 1331 9268 19",
        "GB29 NWBK 6016 1331 9268",
        "GB29 NWBK 6016 1331",
    ]

"""Tests for config loading, chat middleware, streaming restore and the CLI."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import io
import json

import pytest

from pii_cloak import (
    CloakMiddleware, ConfigError, InvalidEntityMapError, StreamingRestorer,
    create_cloak, create_middleware, load_config, load_from_yaml,
)
from pii_cloak.cli import main

SAMPLE = "Email me at qa@example.com and call 555-123-4567"


# ── Config ───────────────────────────────────────────────────────────

def test_load_config_defaults():
    cfg = load_config(None)
    assert cfg["enabled"] is True
    assert cfg["ignore_list"] == set()
    assert cfg["detect_versions"] is True
    assert cfg["enabled_labels"] is None
    assert cfg["paranoid_mode"] is False
    assert cfg["skip_code_blocks"] is False


def test_load_config_nested_and_flat_agree():
    body = {"paranoid_mode": True, "enabled_labels": {"email": False}}
    assert load_config({"cloak": body}) == load_config(body)
    assert load_config(body)["enabled_labels"] == {"EMAIL": False}


def test_load_config_rejects_bad_input():
    with pytest.raises(ConfigError):
        load_config(["not", "a", "mapping"])
    with pytest.raises(ConfigError):
        load_config({"enabled_labels": ["EMAIL"]})


def test_load_from_yaml(tmp_path):
    path = tmp_path / "cloak.yaml"
    path.write_text(
        "cloak:\n"
        "  ignore_list:\n"
        "    - qa@example.com\n"
        "  enabled_labels:\n"
        "    PHONE: false\n"
    )
    cfg = load_from_yaml(path)
    assert cfg["ignore_list"] == {"qa@example.com"}
    assert cfg["enabled_labels"] == {"PHONE": False}

    cloak = create_cloak(cfg)
    result = cloak.anonymize(SAMPLE)
    assert result.text == SAMPLE
    assert result.entity_map == {}


def test_create_cloak_from_raw_dict():
    cloak = create_cloak({"cloak": {"ignore_list": ["555-123-4567"]}})
    assert cloak.anonymize(SAMPLE).entity_map == {"[CLOAK_EMAIL_1]": "qa@example.com"}


def test_disabled_config_gives_passthrough_middleware():
    mw = create_middleware({"cloak": {"enabled": False}})
    messages = [{"role": "user", "content": SAMPLE}]
    assert mw.pre_send(messages) == messages
    assert mw.post_receive("[CLOAK_EMAIL_1]") == "[CLOAK_EMAIL_1]"
    assert mw.stats == {"entity_count": 0, "counts": {}}


def test_enabled_config_gives_middleware():
    mw = create_middleware({})
    assert isinstance(mw, CloakMiddleware)


# ── Middleware ───────────────────────────────────────────────────────

def test_pre_send_leaves_originals_alone():
    mw = CloakMiddleware.create()
    messages = [
        {"role": "system", "content": "You are a helpful assistant."},
        {"role": "user", "content": "I'm bob@x.com"},
    ]
    out = mw.pre_send(messages)
    assert out[0] == messages[0]
    assert out[1] == {"role": "user", "content": "I'm [CLOAK_EMAIL_1]"}
    assert messages[1]["content"] == "I'm bob@x.com"


def test_conversation_keeps_tokens_stable():
    mw = CloakMiddleware.create()
    history = [{"role": "user", "content": "I'm bob@x.com"}]
    mw.pre_send(history)

    history += [
        {"role": "assistant", "content": "Noted."},
        {"role": "user", "content": "Send to bob@x.com and alice@x.com"},
    ]
    out = mw.pre_send(history)
    assert out[0]["content"] == "I'm [CLOAK_EMAIL_1]"
    assert out[2]["content"] == "Send to [CLOAK_EMAIL_1] and [CLOAK_EMAIL_2]"
    assert mw.entity_map == {
        "[CLOAK_EMAIL_1]": "bob@x.com",
        "[CLOAK_EMAIL_2]": "alice@x.com",
    }


def test_post_receive_restores():
    mw = CloakMiddleware.create()
    mw.pre_send([{"role": "user", "content": SAMPLE}])
    reply = "I'll email [CLOAK_EMAIL_1] and call [CLOAK_PHONE_1]."
    assert mw.post_receive(reply) == "I'll email qa@example.com and call 555-123-4567."
    assert mw.restore_text(reply) == mw.post_receive(reply)


def test_anonymize_text_shares_conversation_map():
    mw = CloakMiddleware.create()
    first = mw.anonymize_text("reach me at bob@x.com")
    second = mw.anonymize_text("bob@x.com again")
    assert first == "reach me at [CLOAK_EMAIL_1]"
    assert second == "[CLOAK_EMAIL_1] again"


def test_stats_carry_counts_only():
    mw = CloakMiddleware.create()
    mw.pre_send([{"role": "user", "content": SAMPLE}])
    assert mw.stats == {"entity_count": 2, "counts": {"EMAIL": 1, "PHONE": 1}}
    assert "qa@example.com" not in json.dumps(mw.stats)


# ── Streaming ────────────────────────────────────────────────────────

def test_streaming_token_split_across_chunks():
    restorer = StreamingRestorer({"[CLOAK_EMAIL_1]": "bob@x.com"})
    out = restorer.feed("Hi [CLO")
    assert out == "Hi "
    out += restorer.feed("AK_EMAIL_1] there [x]")
    out += restorer.flush()
    assert out == "Hi bob@x.com there [x]"


def test_streaming_one_char_at_a_time():
    entity_map = {"[CLOAK_EMAIL_1]": "bob@x.com", "[CLOAK_PHONE_1]": "555-123-4567"}
    text = "Mail [CLOAK_EMAIL_1], ring [CLOAK_PHONE_1] [not a token"
    restorer = StreamingRestorer(entity_map)
    out = "".join(restorer.feed(ch) for ch in text) + restorer.flush()
    assert out == "Mail bob@x.com, ring 555-123-4567 [not a token"


def test_streaming_unknown_token_passes_through():
    restorer = StreamingRestorer({"[CLOAK_EMAIL_1]": "bob@x.com"})
    out = restorer.feed("see [CLOAK_EMAIL_9] ok") + restorer.flush()
    assert out == "see [CLOAK_EMAIL_9] ok"


def test_streaming_flush_releases_partial_token():
    restorer = StreamingRestorer({"[CLOAK_EMAIL_1]": "bob@x.com"})
    assert restorer.feed("tail [CLOAK_EM") == "tail "
    assert restorer.flush() == "[CLOAK_EM"


def test_streaming_from_middleware():
    mw = CloakMiddleware.create()
    mw.pre_send([{"role": "user", "content": "I'm bob@x.com"}])
    restorer = mw.restorer()
    out = restorer.feed("Hello [CLOAK_") + restorer.feed("EMAIL_1]!") + restorer.flush()
    assert out == "Hello bob@x.com!"


def test_streaming_rejects_invalid_map():
    with pytest.raises(InvalidEntityMapError):
        StreamingRestorer({"[CLOAK_EMAIL_1]": None})


# ── CLI ──────────────────────────────────────────────────────────────

def test_cli_anonymize(monkeypatch, capsys):
    monkeypatch.setattr(sys, "stdin", io.StringIO(SAMPLE))
    assert main(["anonymize"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["text"] == "Email me at [CLOAK_EMAIL_1] and call [CLOAK_PHONE_1]"
    assert payload["counts"] == {"PHONE": 1, "EMAIL": 1}


def test_cli_disable_and_ignore(monkeypatch, capsys):
    monkeypatch.setattr(sys, "stdin", io.StringIO(SAMPLE))
    assert main(["--disable", "phone", "--ignore", "qa@example.com", "anonymize"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["text"] == SAMPLE
    assert payload["entity_map"] == {}


def test_cli_anonymize_messages(monkeypatch, capsys):
    messages = [
        {"role": "user", "content": "I'm bob@x.com"},
        {"role": "user", "content": "again bob@x.com"},
    ]
    monkeypatch.setattr(sys, "stdin", io.StringIO(json.dumps(messages)))
    assert main(["anonymize-messages"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert [m["content"] for m in payload["messages"]] == [
        "I'm [CLOAK_EMAIL_1]", "again [CLOAK_EMAIL_1]",
    ]
    assert payload["entity_map"] == {"[CLOAK_EMAIL_1]": "bob@x.com"}


def test_cli_deanonymize(tmp_path, monkeypatch, capsys):
    map_path = tmp_path / "map.json"
    map_path.write_text(json.dumps({"[CLOAK_EMAIL_1]": "qa@example.com"}))
    monkeypatch.setattr(sys, "stdin", io.StringIO("Hello [CLOAK_EMAIL_1]"))
    assert main(["deanonymize", "--map", str(map_path)]) == 0
    assert capsys.readouterr().out == "Hello qa@example.com"


def test_cli_deanonymize_bad_map(tmp_path, monkeypatch, capsys):
    map_path = tmp_path / "map.json"
    map_path.write_text(json.dumps(["[CLOAK_EMAIL_1]"]))
    monkeypatch.setattr(sys, "stdin", io.StringIO("Hello [CLOAK_EMAIL_1]"))
    assert main(["deanonymize", "--map", str(map_path)]) == 2
    assert "invalid entity map" in capsys.readouterr().err


def test_cli_labels(capsys):
    assert main(["labels"]) == 0
    keys = [entry["key"] for entry in json.loads(capsys.readouterr().out)]
    assert "EMAIL" in keys
    assert "BANK_ACCOUNT" in keys

"""CLI interface for pii-cloak.

Usage:
    # Anonymize text (stdin: text, stdout: JSON with text + entity map)
    echo 'Email me at qa@example.com' | python -m pii_cloak.cli anonymize

    # Anonymize chat messages (stdin: JSON array of messages)
    echo '[{"role":"user","content":"I am qa@example.com"}]' | \
        python -m pii_cloak.cli anonymize-messages

    # Restore tokens (stdin: text with tokens, --map: JSON entity map)
    echo 'Hello [CLOAK_EMAIL_1]' | \
        python -m pii_cloak.cli deanonymize --map entity_map.json

    # List PII types
    python -m pii_cloak.cli labels
"""

from __future__ import annotations
import argparse
import json
import logging
import sys

from .cloak import Cloak, CloakConfig
from .config import load_from_yaml, to_cloak_config
from .errors import CloakError
from .types import PII_TYPES
from .vault import count_by_type, restore


def _build_cloak(args: argparse.Namespace) -> Cloak:
    config = to_cloak_config(load_from_yaml(args.config)) if args.config else CloakConfig()
    changes: dict = {}
    if args.ignore:
        changes["ignore_list"] = config.ignore_list | set(args.ignore.split(","))
    if args.disable:
        labels = dict(config.enabled_labels or {})
        labels.update({label.strip().upper(): False for label in args.disable.split(",")})
        changes["enabled_labels"] = labels
    if args.paranoid:
        changes["paranoid_mode"] = True
    if args.no_version_heuristic:
        changes["detect_versions"] = False
    if args.skip_code_blocks:
        changes["skip_code_blocks"] = True
    cloak = Cloak(config)
    if changes:
        cloak.configure(**changes)
    return cloak


def cmd_anonymize(args: argparse.Namespace) -> None:
    """Anonymize plain text on stdin."""
    cloak = _build_cloak(args)
    result = cloak.anonymize(sys.stdin.read())

    # Output both the text and the map needed to restore it
    output = {
        "text": result.text,
        "entity_map": result.entity_map,
        "counts": count_by_type(result.entity_map),
    }
    json.dump(output, sys.stdout, ensure_ascii=False)
    sys.stdout.write("\n")


def cmd_anonymize_messages(args: argparse.Namespace) -> None:
    """Anonymize chat-format messages on stdin."""
    cloak = _build_cloak(args)
    messages = json.loads(sys.stdin.read())
    out, entity_map = cloak.anonymize_messages(messages)
    json.dump({"messages": out, "entity_map": entity_map}, sys.stdout, ensure_ascii=False)
    sys.stdout.write("\n")


def cmd_deanonymize(args: argparse.Namespace) -> None:
    """Restore tokens in text from stdin."""
    with open(args.map) as f:
        entity_map = json.load(f)
    sys.stdout.write(restore(sys.stdin.read(), entity_map))


def cmd_labels(args: argparse.Namespace) -> None:
    """List the PII types that can be toggled."""
    json.dump(
        [{"key": t.key, "label": t.label, "category": t.category} for t in PII_TYPES],
        sys.stdout, indent=2,
    )
    sys.stdout.write("\n")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="pii-cloak",
        description="Reversible PII anonymization for free-form text",
    )
    parser.add_argument("--config", default="", help="YAML config file")
    parser.add_argument("--ignore", default="", help="Comma-separated values to never tokenize")
    parser.add_argument("--disable", default="", help="Comma-separated PII types to disable")
    parser.add_argument("--paranoid", action="store_true", help="Enable broader detectors")
    parser.add_argument("--no-version-heuristic", action="store_true",
                        help="Don't suppress version-number-looking IPs")
    parser.add_argument("--skip-code-blocks", action="store_true",
                        help="Leave ``` fenced code blocks untouched")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging to stderr")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("anonymize", help="Anonymize plain text (stdin)")
    sub.add_parser("anonymize-messages", help="Anonymize chat messages (JSON stdin)")
    p_de = sub.add_parser("deanonymize", help="Restore tokens (stdin)")
    p_de.add_argument("--map", required=True, help="JSON entity map file")
    sub.add_parser("labels", help="List PII types")

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )

    cmds = {
        "anonymize": cmd_anonymize,
        "anonymize-messages": cmd_anonymize_messages,
        "deanonymize": cmd_deanonymize,
        "labels": cmd_labels,
    }
    try:
        cmds[args.command](args)
    except CloakError as e:
        sys.stderr.write(f"pii-cloak: {e}\n")
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""YAML/dict config loader for pii-cloak.

Supports loading from a YAML file or a plain dict (for embedding in a
larger application config).

Example YAML:

    cloak:
      enabled: true
      detect_versions: true
      paranoid_mode: false
      skip_code_blocks: false
      ignore_list:
        - support@example.com
      enabled_labels:
        IP_ADDR: false
        UK_POSTCODE: false
"""

from __future__ import annotations
from pathlib import Path
from typing import Any

import yaml

from .cloak import Cloak, CloakConfig
from .errors import ConfigError
from .middleware import CloakMiddleware


class _NoopMiddleware:
    """Pass-through middleware when anonymization is disabled."""
    def pre_send(self, messages: list[dict]) -> list[dict]:
        return messages
    def post_receive(self, text: str) -> str:
        return text
    def anonymize_text(self, text: str) -> str:
        return text
    def restore_text(self, text: str) -> str:
        return text
    @property
    def stats(self) -> dict:
        return {"entity_count": 0, "counts": {}}


def load_config(data: dict[str, Any] | None) -> dict[str, Any]:
    """Normalize a config dict (from YAML or inline)."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"config must be a mapping, got {type(data).__name__}")
    # Support nested under "cloak" key or flat
    if "cloak" in data:
        data = data["cloak"] or {}

    enabled_labels = data.get("enabled_labels")
    if enabled_labels is not None and not isinstance(enabled_labels, dict):
        raise ConfigError("enabled_labels must be a mapping of label → bool")

    return {
        "enabled": data.get("enabled", True),
        "ignore_list": set(data.get("ignore_list") or []),
        "detect_versions": data.get("detect_versions", True),
        "enabled_labels": (
            {str(k).upper(): bool(v) for k, v in enabled_labels.items()}
            if enabled_labels is not None else None
        ),
        "paranoid_mode": data.get("paranoid_mode", False),
        "skip_code_blocks": data.get("skip_code_blocks", False),
    }


def load_from_yaml(path: str | Path) -> dict[str, Any]:
    """Load config from a YAML file."""
    with open(Path(path).expanduser()) as f:
        return load_config(yaml.safe_load(f))


def to_cloak_config(cfg: dict[str, Any]) -> CloakConfig:
    return CloakConfig(
        ignore_list=frozenset(cfg["ignore_list"]),
        detect_versions=cfg["detect_versions"],
        enabled_labels=cfg["enabled_labels"],
        paranoid_mode=cfg["paranoid_mode"],
        skip_code_blocks=cfg["skip_code_blocks"],
    )


def create_cloak(config: dict[str, Any]) -> Cloak:
    """Create an engine from a config dict."""
    cfg = load_config(config)
    return Cloak(to_cloak_config(cfg))


def create_middleware(config: dict[str, Any]) -> CloakMiddleware | _NoopMiddleware:
    """Create a fully configured middleware from a config dict."""
    cfg = load_config(config)

    if not cfg["enabled"]:
        # Return a pass-through middleware (no anonymization)
        return _NoopMiddleware()

    return CloakMiddleware(cloak=Cloak(to_cloak_config(cfg)))

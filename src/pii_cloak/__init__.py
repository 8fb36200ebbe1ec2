"""pii-cloak — reversible PII anonymization for free-form text."""

from .cloak import Cloak, CloakConfig, anonymize, deanonymize
from .middleware import CloakMiddleware
from .streaming import StreamingRestorer
from .config import create_cloak, create_middleware, load_config, load_from_yaml
from .errors import CloakError, ConfigError, InvalidEntityMapError
from .types import (
    AcceptedMatch, Candidate, CloakResult, Detector, PII_TYPES, format_token, parse_token,
)
from .vault import count_by_type

__all__ = [
    "Cloak", "CloakConfig", "anonymize", "deanonymize",
    "CloakMiddleware",
    "StreamingRestorer",
    "create_cloak", "create_middleware", "load_config", "load_from_yaml",
    "CloakError", "ConfigError", "InvalidEntityMapError",
    "AcceptedMatch", "Candidate", "CloakResult", "Detector", "PII_TYPES",
    "format_token", "parse_token",
    "count_by_type",
]
__version__ = "0.1.0"

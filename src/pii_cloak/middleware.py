"""Chat middleware — anonymize outbound messages, restore inbound replies.

One middleware per conversation.  It keeps the conversation's entity map,
so a value seen in an earlier message keeps its token in later ones and
new tokens never reuse a number already handed out.

    mw = CloakMiddleware.create()

    # Before sending to the provider
    safe_messages = mw.pre_send(messages)

    # After receiving the response
    real_response = mw.post_receive(response_text)
"""

from __future__ import annotations
from dataclasses import dataclass, field

from .cloak import Cloak, CloakConfig
from .streaming import StreamingRestorer
from .vault import count_by_type, restore


@dataclass
class CloakMiddleware:
    """Middleware that sits between a chat client and an LLM provider."""

    cloak: Cloak
    entity_map: dict[str, str] = field(default_factory=dict)

    @classmethod
    def create(cls, *, config: CloakConfig | None = None) -> "CloakMiddleware":
        """Factory — a fresh middleware with an empty conversation map."""
        return cls(cloak=Cloak(config))

    def pre_send(self, messages: list[dict]) -> list[dict]:
        """Anonymize outbound messages."""
        out, self.entity_map = self.cloak.anonymize_messages(messages, self.entity_map)
        return out

    def post_receive(self, text: str) -> str:
        """Restore tokens in the model's response."""
        return restore(text, self.entity_map)

    def anonymize_text(self, text: str) -> str:
        result = self.cloak.anonymize(text, self.entity_map)
        self.entity_map.update(result.entity_map)
        return result.text

    def restore_text(self, text: str) -> str:
        """Alias for post_receive."""
        return restore(text, self.entity_map)

    def restorer(self) -> StreamingRestorer:
        """A streaming restorer bound to this conversation's map."""
        return StreamingRestorer(self.entity_map)

    @property
    def stats(self) -> dict:
        # Counts only; the map itself holds PII
        return {
            "entity_count": len(self.entity_map),
            "counts": count_by_type(self.entity_map),
        }

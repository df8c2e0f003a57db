"""AI agents package."""

from ledger_assistant.agents.pre_parser import (
    GeminiPreParser,
    MessagePreParser,
    PassthroughPreParser,
)

__all__ = ["GeminiPreParser", "MessagePreParser", "PassthroughPreParser"]

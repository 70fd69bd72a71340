"""
ConversationAgent port: the LLM-based agent the engine defers to.

Implementations may call an LLM (ClaudeConversationAgent) or return canned
text (SimulatorConversationAgent). Both must satisfy the same contract.
"""

from abc import ABC, abstractmethod


class ConversationAgent(ABC):

    @abstractmethod
    async def reply(self, message: str, context_summary: dict | None = None) -> str:
        """Answer a customer message. May be slow or raise; callers time it out."""
        ...

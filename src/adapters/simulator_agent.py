"""
SimulatorConversationAgent: canned LLM stand-in for tests.

No network. Optionally slow (to exercise timeouts) or failing (to exercise
degradation). Every call is recorded.
"""

import asyncio

from src.domain.agent import ConversationAgent


class SimulatorConversationAgent(ConversationAgent):

    def __init__(
        self,
        reply_text: str = "Happy to help! Could you tell me a bit more about what you'd like?",
        delay_seconds: float = 0.0,
        error: Exception | None = None,
    ):
        self.reply_text = reply_text
        self.delay_seconds = delay_seconds
        self.error = error
        self.calls: list[tuple[str, dict | None]] = []

    async def reply(self, message: str, context_summary: dict | None = None) -> str:
        self.calls.append((message, context_summary))
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.error is not None:
            raise self.error
        return self.reply_text

"""
ClaudeConversationAgent: answers the messages the rule-based engine defers.

The system prompt lives in src/prompts/fallback_agent.txt. Uses the async
client so the assistant's timeout can actually cancel a slow call.
"""

import json
import logging
import os

import anthropic

from src.domain.agent import ConversationAgent
from src.prompts import load_prompt

log = logging.getLogger(__name__)


class ClaudeConversationAgent(ConversationAgent):
    """Conversation agent backed by Claude claude-haiku-4-5-20251001 (fast + cheap)."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-haiku-4-5-20251001",
        salon_name: str = "",
    ):
        self._client = anthropic.AsyncAnthropic(api_key=api_key or os.environ["ANTHROPIC_API_KEY"])
        self._model = model
        self._system = load_prompt("fallback_agent")
        if salon_name:
            self._system += f"\n\nThe salon is called {salon_name}."

    async def reply(self, message: str, context_summary: dict | None = None) -> str:
        user_content = ""
        if context_summary:
            known = {k: v for k, v in context_summary.items() if v not in (None, "", [], ())}
            if known:
                user_content += f"Conversation so far:\n{json.dumps(known, indent=2)}\n\n"
        user_content += f"Latest customer message:\n{message}"

        response = await self._client.messages.create(
            model=self._model,
            max_tokens=300,
            system=self._system,
            messages=[{"role": "user", "content": user_content}],
        )
        text = response.content[0].text.strip()
        log.debug("claude reply tokens_in=%s tokens_out=%s", response.usage.input_tokens, response.usage.output_tokens)
        return text

"""
ChatAssistant: routes one customer message between the rule-based engine
and the (optional) LLM conversation agent.

Two modes:

  engine-first (default)  the deterministic engine answers; only a Deferred
                          outcome goes to the agent, under a timeout.
  agent-first             the agent answers, under a timeout; the engine
                          takes over whenever the agent is slow or fails.

Either way the customer always gets an answer: an agent failure degrades to
the engine (agent-first) or to the help text (engine-first).
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Literal

from src.dialogue import DialogueEngine
from src.domain.agent import ConversationAgent
from src.domain.context import ConversationKey
from src.domain.response import Button, Deferred, EngineReply

log = logging.getLogger(__name__)

FALLBACK_TEXT = (
    "Sorry, I'm not sure I understood that. You can say things like "
    "\"Book a haircut for tomorrow at 2pm\", \"my appointments\" or \"cancel my appointment\"."
)


@dataclass
class AssistantReply:
    text: str
    buttons: list[Button] = field(default_factory=list)
    handled_by: Literal["engine", "agent", "fallback"] = "engine"


class ChatAssistant:

    def __init__(
        self,
        engine: DialogueEngine,
        agent: ConversationAgent | None = None,
        timeout_seconds: float = 8.0,
        agent_first: bool = False,
    ):
        self._engine = engine
        self._agent = agent
        self._timeout = timeout_seconds
        self._agent_first = agent_first and agent is not None

    async def handle(
        self,
        key: ConversationKey,
        message: str,
        customer_email: str | None = None,
        customer_name: str | None = None,
    ) -> AssistantReply:
        if self._agent_first:
            text = await self._ask_agent(key, message, None)
            if text is not None:
                return AssistantReply(text=text, handled_by="agent")

        outcome = await self._engine.handle_turn(key, message, customer_email, customer_name)
        if isinstance(outcome, EngineReply):
            return AssistantReply(text=outcome.text, buttons=outcome.buttons, handled_by="engine")

        return await self._deferred(key, outcome)

    async def _deferred(self, key: ConversationKey, deferred: Deferred) -> AssistantReply:
        if not self._agent_first and self._agent is not None:
            text = await self._ask_agent(key, deferred.message, deferred.context_summary)
            if text is not None:
                return AssistantReply(text=text, handled_by="agent")
        log.warning("key=%s deferred (%s) with no agent answer, sending help text", key, deferred.reason)
        return AssistantReply(text=FALLBACK_TEXT, handled_by="fallback")

    async def _ask_agent(self, key: ConversationKey, message: str, summary: dict | None) -> str | None:
        """The agent's reply, or None when it timed out, failed or said nothing."""
        try:
            text = await asyncio.wait_for(self._agent.reply(message, summary), timeout=self._timeout)
        except asyncio.TimeoutError:
            log.warning("key=%s agent timed out after %.1fs", key, self._timeout)
            return None
        except Exception:
            log.exception("key=%s agent failed", key)
            return None
        if not text or not text.strip():
            log.warning("key=%s agent returned an empty reply", key)
            return None
        log.info("key=%s agent replied len=%d", key, len(text))
        return text.strip()

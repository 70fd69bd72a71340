"""
ChatAssistant routing between the engine and the LLM agent.

Simulator agent only: slow and failing agents are simulated with
delay_seconds / error.
"""

from datetime import datetime, timezone

import pytest

from src.adapters.factory import create_engine
from src.adapters.memory_session import InMemorySessionRepository
from src.adapters.simulator_agent import SimulatorConversationAgent
from src.adapters.simulator_salon import InMemorySalonGateway
from src.assistant import FALLBACK_TEXT, ChatAssistant
from src.clock import FixedClock
from src.domain.context import ConversationKey

KEY = ConversationKey("whatsapp", "+6590001111")
INLINE_RESCHEDULE = "reschedule my haircut on 12 dec to 14 dec"


@pytest.fixture
def salon():
    return InMemorySalonGateway()


@pytest.fixture
def engine(salon):
    clock = FixedClock(datetime(2026, 4, 1, 10, 0, tzinfo=timezone.utc))
    return create_engine(salon, InMemorySessionRepository(), clock=clock)


# ---------------------------------------------------------------------------
# engine-first
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_engine_answers_without_calling_agent(engine):
    agent = SimulatorConversationAgent()
    assistant = ChatAssistant(engine, agent)

    reply = await assistant.handle(KEY, "Book a haircut for tomorrow at 2pm")

    assert reply.handled_by == "engine"
    assert "Reply 'yes' to confirm" in reply.text
    assert [b.callback for b in reply.buttons] == ["yes", "never mind"]
    assert agent.calls == []


@pytest.mark.asyncio
async def test_deferred_turn_goes_to_agent(engine):
    agent = SimulatorConversationAgent(reply_text="I can move that for you. Which time on the 14th?")
    assistant = ChatAssistant(engine, agent)

    reply = await assistant.handle(KEY, INLINE_RESCHEDULE)

    assert reply.handled_by == "agent"
    assert reply.text == "I can move that for you. Which time on the 14th?"
    assert agent.calls == [(INLINE_RESCHEDULE, None)]


@pytest.mark.asyncio
async def test_deferred_without_agent_gets_help_text(engine):
    reply = await ChatAssistant(engine).handle(KEY, INLINE_RESCHEDULE)
    assert reply.handled_by == "fallback"
    assert reply.text == FALLBACK_TEXT


@pytest.mark.asyncio
async def test_slow_agent_times_out_to_help_text(engine):
    agent = SimulatorConversationAgent(delay_seconds=1.0)
    assistant = ChatAssistant(engine, agent, timeout_seconds=0.05)

    reply = await assistant.handle(KEY, INLINE_RESCHEDULE)
    assert reply.handled_by == "fallback"


@pytest.mark.asyncio
async def test_failing_agent_degrades_to_help_text(engine):
    agent = SimulatorConversationAgent(error=RuntimeError("overloaded"))
    reply = await ChatAssistant(engine, agent).handle(KEY, INLINE_RESCHEDULE)
    assert reply.handled_by == "fallback"
    assert reply.text == FALLBACK_TEXT


@pytest.mark.asyncio
async def test_blank_agent_reply_is_not_sent(engine):
    agent = SimulatorConversationAgent(reply_text="   ")
    reply = await ChatAssistant(engine, agent).handle(KEY, INLINE_RESCHEDULE)
    assert reply.handled_by == "fallback"


# ---------------------------------------------------------------------------
# agent-first
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_agent_first_uses_agent_reply(engine, salon):
    agent = SimulatorConversationAgent(reply_text="Sure, a haircut tomorrow at 2pm. Shall I book it?")
    assistant = ChatAssistant(engine, agent, agent_first=True)

    reply = await assistant.handle(KEY, "Book a haircut for tomorrow at 2pm")

    assert reply.handled_by == "agent"
    assert reply.text.startswith("Sure")
    assert len(agent.calls) == 1


@pytest.mark.asyncio
async def test_agent_first_falls_back_to_engine_when_slow(engine):
    agent = SimulatorConversationAgent(delay_seconds=1.0)
    assistant = ChatAssistant(engine, agent, timeout_seconds=0.05, agent_first=True)

    reply = await assistant.handle(KEY, "Book a haircut for tomorrow at 2pm")

    assert reply.handled_by == "engine"
    assert "Reply 'yes' to confirm" in reply.text


@pytest.mark.asyncio
async def test_agent_first_falls_back_to_engine_on_error(engine):
    agent = SimulatorConversationAgent(error=ConnectionError("no route"))
    assistant = ChatAssistant(engine, agent, agent_first=True)

    reply = await assistant.handle(KEY, "when are you open?")
    assert reply.handled_by == "engine"
    assert "Sunday: Closed" in reply.text


@pytest.mark.asyncio
async def test_agent_first_without_agent_is_engine_first(engine):
    reply = await ChatAssistant(engine, None, agent_first=True).handle(KEY, "hello")
    assert reply.handled_by == "engine"


@pytest.mark.asyncio
async def test_agent_is_not_asked_twice_for_a_deferral_in_agent_first_mode(engine):
    agent = SimulatorConversationAgent(error=RuntimeError("overloaded"))
    assistant = ChatAssistant(engine, agent, agent_first=True)

    reply = await assistant.handle(KEY, INLINE_RESCHEDULE)

    assert reply.handled_by == "fallback"
    assert len(agent.calls) == 1

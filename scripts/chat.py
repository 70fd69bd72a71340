"""
Console chat with the salon booking assistant.

Runs the full conversation stack against the in-memory salon simulator,
so the dialogue can be tried without a booking backend. Quick-reply
buttons are printed as numbered options; typing the number sends the
button's text.

Usage:
    source .env && python scripts/chat.py

Environment variables (all optional):
    SESSION_BACKEND     - "memory" or "sqlite" (default: memory)
    DB_PATH             - SQLite database path (default: data/sessions.db)
    ANTHROPIC_API_KEY   - enables the Claude agent for deferred messages
    AGENT_FIRST         - "1" to let the agent answer first (default: engine first)
    CUSTOMER_EMAIL      - identity used for cancel / reschedule / view
    LOG_LEVEL           - default: WARNING
    plus every engine setting listed in src/config.py
"""

import asyncio
import logging
import os
import sys

# Make sure project root is on sys.path when run as a script
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.adapters.factory import create_conversation_agent, create_engine, create_session_repository
from src.adapters.simulator_salon import InMemorySalonGateway
from src.assistant import ChatAssistant
from src.config import EngineSettings
from src.domain.context import ConversationKey

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "WARNING").upper(),
    format="%(asctime)s  %(levelname)-7s  %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
log = logging.getLogger(__name__)


def build_assistant(settings: EngineSettings) -> ChatAssistant:
    if os.environ.get("SESSION_BACKEND") == "sqlite":
        db_path = os.environ.get("DB_PATH", "data/sessions.db")
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)

    engine = create_engine(InMemorySalonGateway(), create_session_repository(), settings)
    agent = create_conversation_agent(settings)
    if agent is None:
        log.info("ANTHROPIC_API_KEY not set, running without the LLM agent")
    return ChatAssistant(
        engine,
        agent=agent,
        timeout_seconds=settings.fallback_timeout_seconds,
        agent_first=os.environ.get("AGENT_FIRST", "").lower() in ("1", "true", "yes"),
    )


async def main() -> None:
    settings = EngineSettings.from_env()
    assistant = build_assistant(settings)
    key = ConversationKey(channel="console", user_id=os.environ.get("USER", "local"))
    email = os.environ.get("CUSTOMER_EMAIL")

    print(f"Chatting with {settings.salon_name}. Type 'quit' to exit.\n")
    buttons = []
    while True:
        try:
            message = input("you> ").strip()
        except EOFError:
            break
        if message.lower() in ("quit", "exit"):
            break
        if not message:
            continue
        if message.isdigit() and buttons and 1 <= int(message) <= len(buttons):
            message = buttons[int(message) - 1].callback
            print(f"     ({message})")

        reply = await assistant.handle(key, message, customer_email=email)
        print(f"\nsalon [{reply.handled_by}]> {reply.text}\n")
        buttons = reply.buttons
        for i, button in enumerate(buttons, start=1):
            print(f"   [{i}] {button.label}")
        if buttons:
            print()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        log.info("Chat stopped.")

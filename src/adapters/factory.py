import os

from src.availability import AvailabilityEngine
from src.clock import Clock, system_clock
from src.config import EngineSettings
from src.context_store import ContextStore
from src.dialogue import DialogueEngine, EngineConfig
from src.domain.agent import ConversationAgent
from src.domain.salon import SalonGateway
from src.domain.session import SessionRepository


def create_session_repository(backend: str | None = None, db_path: str | None = None) -> SessionRepository:
    """
    Factory: create the right session repository based on config.

    The backend can be passed explicitly or read from the SESSION_BACKEND
    env var ("memory" or "sqlite"). Defaults to "memory".
    """
    backend = backend or os.environ.get("SESSION_BACKEND", "memory")

    if backend == "sqlite":
        from .sqlite_session import SqliteSessionRepository

        return SqliteSessionRepository(db_path=db_path or os.environ.get("DB_PATH", "data/sessions.db"))

    if backend == "memory":
        from .memory_session import InMemorySessionRepository

        return InMemorySessionRepository()

    raise ValueError(f"Unknown session backend: {backend!r}")


def create_conversation_agent(settings: EngineSettings, api_key: str | None = None) -> ConversationAgent | None:
    """A Claude agent when an API key is available, otherwise None (engine only)."""
    api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
    if not api_key:
        return None
    from .claude_agent import ClaudeConversationAgent

    return ClaudeConversationAgent(api_key=api_key, salon_name=settings.salon_name)


def create_engine(
    salon: SalonGateway,
    repository: SessionRepository,
    settings: EngineSettings | None = None,
    clock: Clock = system_clock,
) -> DialogueEngine:
    """Wire a DialogueEngine from its collaborators."""
    settings = settings or EngineSettings()
    store = ContextStore(
        repository,
        clock=clock,
        ttl=settings.session_ttl,
        cache_ttl=settings.session_cache_ttl,
        max_history=settings.max_step_history,
    )
    return DialogueEngine(
        EngineConfig(
            salon=salon,
            store=store,
            availability=AvailabilityEngine(salon, settings, clock),
            settings=settings,
        )
    )

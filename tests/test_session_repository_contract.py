"""
SessionRepository contract tests.

Runs the shared contract against:
  - InMemorySessionRepository
  - SqliteSessionRepository with :memory:
"""

from src.adapters.memory_session import InMemorySessionRepository
from src.adapters.sqlite_session import SqliteSessionRepository
from tests.contracts.session_repository_contract import SessionRepositoryContract


class TestInMemorySessionRepository(SessionRepositoryContract):

    def create_repository(self):
        return InMemorySessionRepository()


class TestSqliteSessionRepository(SessionRepositoryContract):

    def create_repository(self):
        return SqliteSessionRepository(":memory:")

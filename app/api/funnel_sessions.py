"""Per-project sync engines shared across requests.

A session holds one hydrated graph per open project, shared by every request
for that project. Routes reach the registry through FastAPI dependencies
so tests can swap in a registry backed by a fake store.
"""

from collections.abc import Callable
from functools import lru_cache

from app.chains.generate_funnel_suggestions import SuggestionGenerator
from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.sync_engine import OptimisticSyncEngine, RemoteStore
from app.db.funnel_store import FunnelStore

logger = get_logger(__name__)


class FunnelSessionRegistry:
    """Holds one OptimisticSyncEngine per loaded project."""

    def __init__(self, store_factory: Callable[[], RemoteStore] = FunnelStore):
        self._store_factory = store_factory
        self._engines: dict[str, OptimisticSyncEngine] = {}

    def __contains__(self, project_id: str) -> bool:
        return project_id in self._engines

    async def open(self, project_id: str) -> OptimisticSyncEngine:
        """
        Return the project's engine, hydrating it on first use.

        Raises:
            FunnelLoadError: If hydration fails; nothing is registered then
        """
        engine = self._engines.get(project_id)
        if engine is not None:
            return engine

        engine = OptimisticSyncEngine(self._store_factory())
        await engine.load(project_id)
        # Another request may have loaded it while we awaited
        return self._engines.setdefault(project_id, engine)

    def discard(self, project_id: str) -> bool:
        """Drop a project's session; in-flight operations finish on the old graph."""
        engine = self._engines.pop(project_id, None)
        if engine is None:
            return False
        engine.reset()
        logger.info(f"Discarded funnel session for project {project_id}", extra={"project_id": project_id})
        return True

    def clear(self) -> None:
        for project_id in list(self._engines):
            self.discard(project_id)


@lru_cache
def get_session_registry() -> FunnelSessionRegistry:
    return FunnelSessionRegistry()


@lru_cache
def get_suggestion_generator() -> SuggestionGenerator:
    return SuggestionGenerator()


def get_brief_author() -> str:
    return get_settings().BRIEF_AUTHOR

"""Remote store for funnel rows, backed by Supabase.

The Supabase client is synchronous; every call runs in a worker thread and is
bounded by REMOTE_TIMEOUT_SECONDS so a slow request surfaces as an ordinary
failure.
"""

import asyncio
from typing import Any, Callable

from supabase import Client

from app.core.config import get_settings
from app.core.logging import get_logger
from app.core.schemas_funnel import EntityKind
from app.db.supabase_client import get_supabase

logger = get_logger(__name__)

PROJECT_COLUMNS = "id, name, description, organizing_principle, principle_rationale, metadata"


class FunnelStoreError(Exception):
    """A remote call failed, was rejected, or timed out."""


class FunnelStore:
    """Row-level CRUD over the six funnel tables."""

    def __init__(self, client: Client | None = None, timeout: float | None = None):
        self._client = client
        self._timeout = timeout

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = get_supabase()
        return self._client

    @property
    def timeout(self) -> float:
        if self._timeout is None:
            self._timeout = get_settings().REMOTE_TIMEOUT_SECONDS
        return self._timeout

    async def _call(self, operation: str, fn: Callable[[], Any]) -> Any:
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn), timeout=self.timeout)
        except FunnelStoreError:
            raise
        except asyncio.TimeoutError as e:
            logger.error(f"Remote call timed out: {operation}")
            raise FunnelStoreError(f"{operation} timed out after {self.timeout}s") from e
        except Exception as e:
            logger.error(f"Remote call failed: {operation}: {e}")
            raise FunnelStoreError(f"{operation} failed: {e}") from e

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def fetch_project(self, project_id: str) -> dict[str, Any] | None:
        """Fetch the project row, or None if it does not exist."""

        def _q() -> dict[str, Any] | None:
            response = (
                self.client.table("projects")
                .select(PROJECT_COLUMNS)
                .eq("id", project_id)
                .limit(1)
                .execute()
            )
            return response.data[0] if response.data else None

        return await self._call(f"fetch project {project_id}", _q)

    def _select_by(self, table: str, column: str, values: list[str] | str) -> list[dict[str, Any]]:
        query = self.client.table(table).select("*")
        if isinstance(values, list):
            query = query.in_(column, values)
        else:
            query = query.eq(column, values)
        response = query.order("sort_order").execute()
        return response.data or []

    async def fetch_funnel_rows(self, project_id: str) -> dict[str, list[dict[str, Any]]]:
        """
        Fetch every funnel row belonging to a project.

        Project-scoped tables are read in parallel; child tables are then read
        by parent ids, so rows of other projects never come back.

        Args:
            project_id: Project id

        Returns:
            Table name -> rows ordered by sort_order
        """
        audiences, pain_desires, angles = await asyncio.gather(
            self._call(
                "fetch audiences",
                lambda: self._select_by(EntityKind.AUDIENCE.value, "project_id", project_id),
            ),
            self._call(
                "fetch pain_desires",
                lambda: self._select_by(EntityKind.PAIN_DESIRE.value, "project_id", project_id),
            ),
            self._call(
                "fetch messaging_angles",
                lambda: self._select_by(EntityKind.ANGLE.value, "project_id", project_id),
            ),
        )

        pain_desire_ids = [row["id"] for row in pain_desires]
        angle_ids = [row["id"] for row in angles]

        links: list[dict[str, Any]] = []
        hooks: list[dict[str, Any]] = []
        if pain_desire_ids:
            links = await self._call(
                "fetch pain_desire_audiences",
                lambda: self._select_by(EntityKind.LINK.value, "pain_desire_id", pain_desire_ids),
            )
        if angle_ids:
            hooks = await self._call(
                "fetch hooks",
                lambda: self._select_by(EntityKind.HOOK.value, "messaging_angle_id", angle_ids),
            )

        executions: list[dict[str, Any]] = []
        hook_ids = [row["id"] for row in hooks]
        if hook_ids:
            executions = await self._call(
                "fetch format_executions",
                lambda: self._select_by(EntityKind.FORMAT_EXECUTION.value, "hook_id", hook_ids),
            )

        logger.info(
            f"Fetched funnel rows for project {project_id}",
            extra={
                "project_id": project_id,
                "audiences": len(audiences),
                "pain_desires": len(pain_desires),
                "links": len(links),
                "angles": len(angles),
                "hooks": len(hooks),
                "format_executions": len(executions),
            },
        )

        return {
            EntityKind.AUDIENCE.value: audiences,
            EntityKind.PAIN_DESIRE.value: pain_desires,
            EntityKind.LINK.value: links,
            EntityKind.ANGLE.value: angles,
            EntityKind.HOOK.value: hooks,
            EntityKind.FORMAT_EXECUTION.value: executions,
        }

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert_row(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """Insert one row and return the stored row (with server id)."""

        def _q() -> dict[str, Any]:
            response = self.client.table(table).insert(row).execute()
            if not response.data:
                raise FunnelStoreError(f"No data returned from insert into {table}")
            return response.data[0]

        return await self._call(f"insert into {table}", _q)

    async def insert_rows(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Insert several rows in a single request."""

        def _q() -> list[dict[str, Any]]:
            response = self.client.table(table).insert(rows).execute()
            return response.data or []

        return await self._call(f"insert {len(rows)} rows into {table}", _q)

    async def update_row(
        self, table: str, row_id: str, fields: dict[str, Any]
    ) -> dict[str, Any]:
        """Patch one row and return the stored row."""

        def _q() -> dict[str, Any]:
            response = self.client.table(table).update(fields).eq("id", row_id).execute()
            if not response.data:
                raise FunnelStoreError(f"No row {row_id} updated in {table}")
            return response.data[0]

        return await self._call(f"update {table} {row_id}", _q)

    async def delete_row(self, table: str, row_id: str) -> None:
        await self._call(
            f"delete {table} {row_id}",
            lambda: self.client.table(table).delete().eq("id", row_id).execute(),
        )

    async def delete_rows(self, table: str, row_ids: list[str]) -> None:
        if not row_ids:
            return
        await self._call(
            f"delete {len(row_ids)} rows from {table}",
            lambda: self.client.table(table).delete().in_("id", row_ids).execute(),
        )

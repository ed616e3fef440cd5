"""Optimistic synchronization between the funnel graph and the remote store.

Every mutation follows the same protocol:

1. capture the affected entities as they are now;
2. apply the change to the graph synchronously (callers see it at once);
3. await the remote request;
4. on success, merge the row the server returns (ids, timestamps);
5. on failure, put the captured entities back and return an error result.

There is no retry, no per-entity lock and no queue: two quick edits to the same
entity race, and whichever response lands last wins. Transport errors,
timeouts and remote rejections are all handled the same way, because the
client cannot tell "committed, response lost" from "not committed".
"""

import asyncio
import functools
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol, TypeVar
from uuid import uuid4

from pydantic import BaseModel, ValidationError

from app.core.format_templates import FORMAT_TEMPLATES, TEMPLATES_BY_ID
from app.core.funnel_graph import FunnelGraph
from app.core.hook_board import plan_hook_move
from app.core.logging import get_logger
from app.core.schemas_funnel import (
    AngleOrigin,
    Audience,
    AwarenessStage,
    EntityKind,
    FormatExecution,
    FunnelEntity,
    GraphSnapshot,
    Hook,
    HookOrigin,
    HookType,
    LensKey,
    MessagingAngle,
    PainDesire,
    PainDesireAudienceLink,
    PainDesireKind,
    ProjectInfo,
    clean_lenses,
)
from app.core.schemas_suggestions import (
    AngleSuggestion,
    AudienceSuggestion,
    FormatSuggestion,
    HookSuggestion,
    PainDesireSuggestion,
)

logger = get_logger(__name__)

E = TypeVar("E", bound=FunnelEntity)

# Angle fields whose edit turns an AI-generated angle into an AI-edited one
ANGLE_COPY_FIELDS = frozenset({"title", "description", "tone"})


class RemoteStore(Protocol):
    """Row-level CRUD the engine needs from the source of truth."""

    async def fetch_project(self, project_id: str) -> dict[str, Any] | None: ...

    async def fetch_funnel_rows(self, project_id: str) -> dict[str, list[dict[str, Any]]]: ...

    async def insert_row(self, table: str, row: dict[str, Any]) -> dict[str, Any]: ...

    async def insert_rows(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]: ...

    async def update_row(self, table: str, row_id: str, fields: dict[str, Any]) -> dict[str, Any]: ...

    async def delete_row(self, table: str, row_id: str) -> None: ...

    async def delete_rows(self, table: str, row_ids: list[str]) -> None: ...


class SyncErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    PRECONDITION = "precondition"
    REMOTE = "remote"


@dataclass
class SyncResult:
    """Outcome of one engine operation; the engine never raises for these."""

    ok: bool
    entity: FunnelEntity | ProjectInfo | None = None
    entities: list[FunnelEntity] = field(default_factory=list)
    error: str | None = None
    error_kind: SyncErrorKind | None = None

    @classmethod
    def success(
        cls,
        entity: FunnelEntity | ProjectInfo | None = None,
        entities: list[FunnelEntity] | None = None,
    ) -> "SyncResult":
        return cls(ok=True, entity=entity, entities=list(entities or []))

    @classmethod
    def failure(cls, kind: SyncErrorKind, error: str) -> "SyncResult":
        return cls(ok=False, error=error, error_kind=kind)

    def __bool__(self) -> bool:
        return self.ok


class PreconditionError(Exception):
    """Local check failed; raised before the graph or the remote is touched."""

    def __init__(self, message: str, kind: SyncErrorKind = SyncErrorKind.PRECONDITION):
        super().__init__(message)
        self.kind = kind


class FunnelLoadError(Exception):
    """Hydration could not fetch the project's rows."""


class ProjectNotFoundError(FunnelLoadError):
    pass


class BatchMismatchError(Exception):
    """A multi-row insert came back with a different number of rows."""


def sync_operation(op: str) -> Callable[[Callable[..., Awaitable[SyncResult]]], Callable[..., Awaitable[SyncResult]]]:
    """Turn precondition failures of an engine method into failed results."""

    def decorator(fn: Callable[..., Awaitable[SyncResult]]) -> Callable[..., Awaitable[SyncResult]]:
        @functools.wraps(fn)
        async def wrapper(self: "OptimisticSyncEngine", *args: Any, **kwargs: Any) -> SyncResult:
            try:
                return await fn(self, *args, **kwargs)
            except PreconditionError as e:
                logger.info(
                    f"Rejected {op}: {e}",
                    extra={"project_id": self.project_id, "error_kind": e.kind.value},
                )
                return SyncResult.failure(e.kind, str(e))

        return wrapper

    return decorator


def _describe_validation(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ()))
        parts.append(f"{location}: {item.get('msg')}" if location else str(item.get("msg")))
    return "; ".join(parts)


def _build(model: type[E], **data: Any) -> E:
    try:
        return model(**data)
    except ValidationError as e:
        raise PreconditionError(f"Invalid {model.__name__}: {_describe_validation(e)}") from e


class OptimisticSyncEngine:
    """Mutation entry points for one project's funnel graph.

    The engine owns no global state: construct it with a store (and optionally
    a pre-built graph) and pass it to whoever needs it.
    """

    def __init__(
        self,
        store: RemoteStore,
        graph: FunnelGraph | None = None,
        id_factory: Callable[[], str] | None = None,
    ):
        self.store = store
        self.graph = graph if graph is not None else FunnelGraph()
        self._hydrated = graph is not None and graph.project_id is not None
        self._new_id = id_factory or (lambda: f"tmp-{uuid4()}")
        self._provisional: set[str] = set()

    @property
    def project_id(self) -> str | None:
        return self.graph.project_id

    @property
    def is_hydrated(self) -> bool:
        return self._hydrated

    def snapshot(self) -> GraphSnapshot:
        return self.graph.snapshot()

    # ------------------------------------------------------------------
    # Hydration
    # ------------------------------------------------------------------

    async def load(self, project_id: str) -> GraphSnapshot:
        """
        Hydrate the graph for a project.

        Calling it again for the loaded project returns the current state
        without refetching.

        Args:
            project_id: Project to load

        Returns:
            Snapshot of the hydrated graph

        Raises:
            ProjectNotFoundError: If the project row does not exist
            FunnelLoadError: If any fetch fails
        """
        if self._hydrated and self.graph.project_id == project_id:
            return self.graph.snapshot()

        try:
            project_row, rows = await asyncio.gather(
                self.store.fetch_project(project_id),
                self.store.fetch_funnel_rows(project_id),
            )
        except Exception as e:
            logger.error(f"Failed to load funnel for project {project_id}: {e}")
            raise FunnelLoadError(f"Failed to load project {project_id}: {e}") from e

        if project_row is None:
            raise ProjectNotFoundError(f"Project not found: {project_id}")

        try:
            graph = FunnelGraph.from_rows(project_id, project_row, rows)
        except ValidationError as e:
            raise FunnelLoadError(
                f"Malformed rows for project {project_id}: {_describe_validation(e)}"
            ) from e

        self.graph = graph
        self._provisional.clear()
        self._hydrated = True
        logger.info(
            f"Hydrated funnel for project {project_id}",
            extra={"project_id": project_id, "entities": len(graph)},
        )
        return graph.snapshot()

    def reset(self) -> None:
        """Discard the graph (leaving the project view)."""
        self.graph = FunnelGraph()
        self._provisional.clear()
        self._hydrated = False

    # ------------------------------------------------------------------
    # Protocol helpers
    # ------------------------------------------------------------------

    def _require(self, entity_id: str, model: type[E]) -> E:
        entity = self.graph.get(entity_id)
        if entity is None or not isinstance(entity, model):
            raise PreconditionError(
                f"{model.__name__} not found: {entity_id}", SyncErrorKind.NOT_FOUND
            )
        if entity_id in self._provisional:
            raise PreconditionError(f"{model.__name__} {entity_id} is still being saved")
        return entity

    def _changes(self, entity: E, fields: dict[str, Any], allowed: frozenset[str]) -> dict[str, Any]:
        """Validate an update and keep only the fields that actually change."""
        unknown = set(fields) - allowed
        if unknown:
            raise PreconditionError(
                f"Cannot update {', '.join(sorted(unknown))} on {type(entity).__name__}"
            )
        try:
            candidate = entity.model_validate({**entity.model_dump(), **fields})
        except ValidationError as e:
            raise PreconditionError(
                f"Invalid {type(entity).__name__}: {_describe_validation(e)}"
            ) from e
        return {
            name: getattr(candidate, name)
            for name in fields
            if getattr(candidate, name) != getattr(entity, name)
        }

    def _remote_failure(self, op: str, error: Exception, **context: Any) -> SyncResult:
        logger.warning(
            f"Rolled back {op}: {error}",
            extra={"project_id": self.project_id, **context},
        )
        return SyncResult.failure(SyncErrorKind.REMOTE, f"Failed to {op}: {error}")

    async def _create(self, entity: E, op: str) -> SyncResult:
        graph = self.graph
        provisional = graph.insert(entity)
        self._provisional.add(provisional.id)
        try:
            row = await self.store.insert_row(entity.entity_kind.value, provisional.insert_row())
            confirmed = type(provisional).from_row(row)
        except Exception as e:
            graph.remove(provisional.id)
            return self._remote_failure(op, e, entity_id=provisional.id)
        finally:
            self._provisional.discard(provisional.id)

        if not graph.replace(provisional.id, confirmed):
            logger.warning(
                f"{op}: provisional {provisional.id} left the graph before confirmation",
                extra={"project_id": graph.project_id, "entity_id": confirmed.id},
            )
        logger.info(f"{op} confirmed", extra={"project_id": graph.project_id, "entity_id": confirmed.id})
        return SyncResult.success(confirmed)

    async def _update(self, entity: E, changes: dict[str, Any], op: str) -> SyncResult:
        if not changes:
            return SyncResult.success(entity)

        graph = self.graph
        updated = graph.patch(entity.id, changes)
        try:
            row = await self.store.update_row(
                entity.entity_kind.value, entity.id, updated.row_patch(list(changes))
            )
            confirmed = type(entity).from_row(row)
        except Exception as e:
            if entity.id in graph:
                graph.put(entity)
            return self._remote_failure(op, e, entity_id=entity.id)

        if entity.id in graph:
            graph.put(confirmed)
        return SyncResult.success(confirmed)

    async def _delete(self, entity: FunnelEntity, op: str) -> SyncResult:
        graph = self.graph
        removed = graph.remove(entity.id)
        dependents = removed[1:]
        try:
            if dependents:
                # Dependent links go first; the store does not cascade for us
                await self.store.delete_rows(EntityKind.LINK.value, [d.id for d in dependents])
            await self.store.delete_row(entity.entity_kind.value, entity.id)
        except Exception as e:
            graph.restore(removed)
            return self._remote_failure(op, e, entity_id=entity.id, cascaded=len(dependents))

        logger.info(
            f"{op} confirmed",
            extra={"project_id": graph.project_id, "entity_id": entity.id, "cascaded": len(dependents)},
        )
        return SyncResult.success(removed[0], entities=dependents)

    # ------------------------------------------------------------------
    # Project
    # ------------------------------------------------------------------

    @sync_operation("update project")
    async def update_project(self, **fields: Any) -> SyncResult:
        """
        Edit the project row: name, description, organizing principle and approach.

        The new values are visible at once and put back if the store fails.

        Args:
            **fields: Subset of ProjectInfo.editable_fields

        Returns:
            Result whose entity is the confirmed ProjectInfo
        """
        graph = self.graph
        project = graph.project
        if project is None:
            raise PreconditionError("No project loaded", SyncErrorKind.NOT_FOUND)
        unknown = set(fields) - ProjectInfo.editable_fields
        if unknown:
            raise PreconditionError(f"Cannot update {', '.join(sorted(unknown))} on project")
        try:
            candidate = ProjectInfo.model_validate(
                {**project.model_dump(), "metadata": project.metadata, **fields}
            )
        except ValidationError as e:
            raise PreconditionError(f"Invalid project: {_describe_validation(e)}") from e

        changed = [name for name in fields if getattr(candidate, name) != getattr(project, name)]
        if not changed:
            return SyncResult.success(project)

        graph.project = candidate
        try:
            row = await self.store.update_row("projects", project.id, candidate.row_patch(changed))
            confirmed = ProjectInfo.from_row(row)
        except Exception as e:
            graph.project = project
            return self._remote_failure("update project", e, fields=",".join(changed))

        graph.project = confirmed
        logger.info("update project confirmed", extra={"project_id": project.id})
        return SyncResult.success(confirmed)

    # ------------------------------------------------------------------
    # Audiences
    # ------------------------------------------------------------------

    @sync_operation("create audience")
    async def create_audience(self, name: str, description: str | None = None) -> SyncResult:
        audience = _build(
            Audience,
            id=self._new_id(),
            project_id=self.project_id,
            name=name,
            description=description,
        )
        return await self._create(audience, "create audience")

    @sync_operation("update audience")
    async def update_audience(self, audience_id: str, **fields: Any) -> SyncResult:
        audience = self._require(audience_id, Audience)
        changes = self._changes(audience, fields, Audience.editable_fields)
        return await self._update(audience, changes, "update audience")

    @sync_operation("delete audience")
    async def delete_audience(self, audience_id: str) -> SyncResult:
        audience = self._require(audience_id, Audience)
        return await self._delete(audience, "delete audience")

    # ------------------------------------------------------------------
    # Pain points and desires
    # ------------------------------------------------------------------

    @sync_operation("create pain/desire")
    async def create_pain_desire(
        self,
        kind: PainDesireKind | str,
        title: str,
        description: str | None = None,
        intensity: int | None = None,
    ) -> SyncResult:
        pain_desire = _build(
            PainDesire,
            id=self._new_id(),
            project_id=self.project_id,
            kind=kind,
            title=title,
            description=description,
            intensity=intensity,
        )
        return await self._create(pain_desire, "create pain/desire")

    @sync_operation("update pain/desire")
    async def update_pain_desire(self, pain_desire_id: str, **fields: Any) -> SyncResult:
        pain_desire = self._require(pain_desire_id, PainDesire)
        changes = self._changes(pain_desire, fields, PainDesire.editable_fields)
        return await self._update(pain_desire, changes, "update pain/desire")

    @sync_operation("delete pain/desire")
    async def delete_pain_desire(self, pain_desire_id: str) -> SyncResult:
        pain_desire = self._require(pain_desire_id, PainDesire)
        return await self._delete(pain_desire, "delete pain/desire")

    # ------------------------------------------------------------------
    # Pain/desire <-> audience links
    # ------------------------------------------------------------------

    def _require_project_pair(self, pain_desire_id: str, audience_id: str) -> None:
        for entity_id, model in ((pain_desire_id, PainDesire), (audience_id, Audience)):
            try:
                self._require(entity_id, model)
            except PreconditionError as e:
                if e.kind == SyncErrorKind.NOT_FOUND:
                    raise PreconditionError(
                        f"{model.__name__} {entity_id} is not part of this project"
                    ) from e
                raise

    @sync_operation("link")
    async def link(self, pain_desire_id: str, audience_id: str) -> SyncResult:
        self._require_project_pair(pain_desire_id, audience_id)
        if self.graph.link_for(pain_desire_id, audience_id) is not None:
            raise PreconditionError(f"{pain_desire_id} is already linked to {audience_id}")
        link = _build(
            PainDesireAudienceLink,
            id=self._new_id(),
            pain_desire_id=pain_desire_id,
            audience_id=audience_id,
        )
        return await self._create(link, "link")

    @sync_operation("unlink")
    async def unlink(self, link_id: str) -> SyncResult:
        link = self._require(link_id, PainDesireAudienceLink)
        return await self._delete(link, "unlink")

    async def toggle_link(self, pain_desire_id: str, audience_id: str) -> SyncResult:
        """Link the pair if it is unlinked, unlink it otherwise."""
        existing = self.graph.link_for(pain_desire_id, audience_id)
        if existing is not None:
            return await self.unlink(existing.id)
        return await self.link(pain_desire_id, audience_id)

    # ------------------------------------------------------------------
    # Messaging angles
    # ------------------------------------------------------------------

    def _require_linked_pair(self, pain_desire_id: str, audience_id: str) -> None:
        self._require_project_pair(pain_desire_id, audience_id)
        link = self.graph.link_for(pain_desire_id, audience_id)
        if link is None:
            raise PreconditionError(
                f"Angles attach to linked pairs; {pain_desire_id} x {audience_id} is not linked"
            )
        if link.id in self._provisional:
            raise PreconditionError("The link for this pair is still being saved")

    @sync_operation("create angle")
    async def create_angle(
        self,
        pain_desire_id: str,
        audience_id: str,
        title: str,
        description: str | None = None,
        tone: str | None = None,
        origin: AngleOrigin = AngleOrigin.MANUAL,
        lenses: dict[str, str] | None = None,
    ) -> SyncResult:
        self._require_linked_pair(pain_desire_id, audience_id)
        angle = _build(
            MessagingAngle,
            id=self._new_id(),
            project_id=self.project_id,
            pain_desire_id=pain_desire_id,
            audience_id=audience_id,
            title=title,
            description=description,
            tone=tone,
            origin=origin,
            lenses=clean_lenses(lenses),
        )
        return await self._create(angle, "create angle")

    @sync_operation("update angle")
    async def update_angle(self, angle_id: str, **fields: Any) -> SyncResult:
        angle = self._require(angle_id, MessagingAngle)
        if "lenses" in fields:
            fields["lenses"] = clean_lenses(fields["lenses"])
        changes = self._changes(angle, fields, MessagingAngle.editable_fields)
        if angle.origin == AngleOrigin.AI_GENERATED and ANGLE_COPY_FIELDS & set(changes):
            changes["origin"] = AngleOrigin.AI_EDITED
        return await self._update(angle, changes, "update angle")

    @sync_operation("set angle lens")
    async def set_angle_lens(self, angle_id: str, lens: LensKey | str, text: str | None) -> SyncResult:
        angle = self._require(angle_id, MessagingAngle)
        try:
            lens_key = LensKey(lens)
        except ValueError as e:
            raise PreconditionError(f"Unknown lens: {lens}") from e
        lenses = dict(angle.lenses)
        if text and text.strip():
            lenses[lens_key] = text.strip()
        else:
            lenses.pop(lens_key, None)
        changes = self._changes(angle, {"lenses": lenses}, MessagingAngle.editable_fields)
        return await self._update(angle, changes, "set angle lens")

    @sync_operation("delete angle")
    async def delete_angle(self, angle_id: str) -> SyncResult:
        angle = self._require(angle_id, MessagingAngle)
        return await self._delete(angle, "delete angle")

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    @sync_operation("create hook")
    async def create_hook(
        self,
        angle_id: str,
        content: str,
        hook_type: HookType | str = HookType.QUESTION,
        stage: AwarenessStage | str = AwarenessStage.UNAWARE,
        origin: HookOrigin = HookOrigin.MANUAL,
    ) -> SyncResult:
        self._require(angle_id, MessagingAngle)
        hook = _build(
            Hook,
            id=self._new_id(),
            messaging_angle_id=angle_id,
            type=hook_type,
            content=content,
            awareness_stage=stage,
            origin=origin,
        )
        return await self._create(hook, "create hook")

    @sync_operation("update hook")
    async def update_hook(self, hook_id: str, **fields: Any) -> SyncResult:
        hook = self._require(hook_id, Hook)
        changes = self._changes(hook, fields, Hook.editable_fields)
        return await self._update(hook, changes, "update hook")

    @sync_operation("star hook")
    async def set_hook_starred(self, hook_id: str, starred: bool) -> SyncResult:
        hook = self._require(hook_id, Hook)
        changes = self._changes(hook, {"starred": starred}, frozenset({"starred"}))
        return await self._update(hook, changes, "star hook")

    @sync_operation("move hook")
    async def move_hook(
        self, hook_id: str, target_stage: AwarenessStage | str, target_index: int
    ) -> SyncResult:
        """
        Drop a hook at a position in a stage column.

        A drop that leaves the hook where it is changes nothing and sends
        nothing to the store.
        """
        hook = self._require(hook_id, Hook)
        try:
            move = plan_hook_move(self.graph, hook_id, target_stage, target_index)
        except ValueError as e:
            raise PreconditionError(f"Unknown awareness stage: {target_stage}") from e
        if move is None:
            return SyncResult.success(hook)
        return await self._update(hook, move.fields, "move hook")

    @sync_operation("delete hook")
    async def delete_hook(self, hook_id: str) -> SyncResult:
        hook = self._require(hook_id, Hook)
        return await self._delete(hook, "delete hook")

    # ------------------------------------------------------------------
    # Format executions
    # ------------------------------------------------------------------

    @staticmethod
    def _check_template(template_id: str | None) -> None:
        if template_id and template_id not in TEMPLATES_BY_ID:
            raise PreconditionError(f"Unknown format template: {template_id}")

    def _execution_for(self, hook_id: str, template_id: str) -> FormatExecution | None:
        for execution in self.graph.format_executions(hook_id):
            if execution.template_id == template_id:
                return execution
        return None

    def _require_free_template(self, hook_id: str, template_id: str | None) -> None:
        # A hook uses each template at most once
        if template_id and self._execution_for(hook_id, template_id) is not None:
            raise PreconditionError(f"Hook {hook_id} already uses format {template_id}")

    @sync_operation("create format execution")
    async def create_format_execution(
        self,
        hook_id: str,
        template_id: str | None = None,
        concept_notes: str | None = None,
    ) -> SyncResult:
        self._require(hook_id, Hook)
        self._check_template(template_id)
        self._require_free_template(hook_id, template_id)
        execution = _build(
            FormatExecution,
            id=self._new_id(),
            hook_id=hook_id,
            template_id=template_id,
            concept_notes=concept_notes,
        )
        return await self._create(execution, "create format execution")

    @sync_operation("update format execution")
    async def update_format_execution(self, execution_id: str, **fields: Any) -> SyncResult:
        execution = self._require(execution_id, FormatExecution)
        if "template_id" in fields:
            self._check_template(fields["template_id"])
        changes = self._changes(execution, fields, FormatExecution.editable_fields)
        if "template_id" in changes:
            self._require_free_template(execution.hook_id, changes["template_id"])
        return await self._update(execution, changes, "update format execution")

    @sync_operation("delete format execution")
    async def delete_format_execution(self, execution_id: str) -> SyncResult:
        execution = self._require(execution_id, FormatExecution)
        return await self._delete(execution, "delete format execution")

    @sync_operation("toggle format")
    async def toggle_format(self, hook_id: str, template_id: str) -> SyncResult:
        """Select a format template for a hook, or drop it if already selected."""
        if not template_id:
            raise PreconditionError("Pick a format template to toggle")
        existing = self._execution_for(hook_id, template_id)
        if existing is not None:
            return await self.delete_format_execution(existing.id)
        return await self.create_format_execution(hook_id, template_id)

    @sync_operation("select all formats")
    async def select_all_formats(self, hook_id: str) -> SyncResult:
        """Add every catalog template the hook does not use yet, in one insert."""
        self._require(hook_id, Hook)
        used = {execution.template_id for execution in self.graph.format_executions(hook_id)}
        missing = [{"template_id": t.id} for t in FORMAT_TEMPLATES if t.id not in used]
        if not missing:
            return SyncResult.success()
        return await self.accept_suggestions(EntityKind.FORMAT_EXECUTION, missing, hook_id=hook_id)

    @sync_operation("clear formats")
    async def clear_formats_for_hook(self, hook_id: str) -> SyncResult:
        """
        Drop every templated format execution of a hook in one delete.

        Executions without a template stay. If the store fails, all of the
        removed executions come back.

        Returns:
            Result whose entities are the removed executions
        """
        self._require(hook_id, Hook)
        targets = [e for e in self.graph.format_executions(hook_id) if e.template_id]
        if any(e.id in self._provisional for e in targets):
            raise PreconditionError(f"A format execution of hook {hook_id} is still being saved")
        if not targets:
            return SyncResult.success()

        graph = self.graph
        removed = [entity for target in targets for entity in graph.remove(target.id)]
        try:
            await self.store.delete_rows(
                EntityKind.FORMAT_EXECUTION.value, [entity.id for entity in removed]
            )
        except Exception as e:
            graph.restore(removed)
            return self._remote_failure("clear formats", e, entity_id=hook_id, cascaded=len(removed))

        logger.info(
            "clear formats confirmed",
            extra={"project_id": graph.project_id, "entity_id": hook_id, "cascaded": len(removed)},
        )
        return SyncResult.success(entities=removed)

    # ------------------------------------------------------------------
    # Batch accept of AI suggestions
    # ------------------------------------------------------------------

    def _entities_for(
        self,
        kind: EntityKind,
        candidates: list[Any],
        angle_id: str | None,
        pain_desire_id: str | None,
        audience_id: str | None,
        stage: AwarenessStage | str,
        hook_id: str | None = None,
    ) -> list[FunnelEntity]:
        if kind == EntityKind.AUDIENCE:
            return [
                _build(
                    Audience,
                    id=self._new_id(),
                    project_id=self.project_id,
                    **AudienceSuggestion.model_validate(c).model_dump(),
                )
                for c in candidates
            ]
        if kind == EntityKind.PAIN_DESIRE:
            return [
                _build(
                    PainDesire,
                    id=self._new_id(),
                    project_id=self.project_id,
                    **PainDesireSuggestion.model_validate(c).model_dump(),
                )
                for c in candidates
            ]
        if kind == EntityKind.ANGLE:
            if not pain_desire_id or not audience_id:
                raise PreconditionError("Angle suggestions need a pain/desire and an audience")
            self._require_linked_pair(pain_desire_id, audience_id)
            return [
                _build(
                    MessagingAngle,
                    id=self._new_id(),
                    project_id=self.project_id,
                    pain_desire_id=pain_desire_id,
                    audience_id=audience_id,
                    origin=AngleOrigin.AI_GENERATED,
                    **AngleSuggestion.model_validate(c).model_dump(),
                )
                for c in candidates
            ]
        if kind == EntityKind.HOOK:
            if not angle_id:
                raise PreconditionError("Hook suggestions need an angle")
            self._require(angle_id, MessagingAngle)
            return [
                _build(
                    Hook,
                    id=self._new_id(),
                    messaging_angle_id=angle_id,
                    awareness_stage=stage,
                    origin=HookOrigin.AI_GENERATED,
                    **HookSuggestion.model_validate(c).model_dump(),
                )
                for c in candidates
            ]
        if kind == EntityKind.FORMAT_EXECUTION:
            if not hook_id:
                raise PreconditionError("Format suggestions need a hook")
            self._require(hook_id, Hook)
            suggestions = [
                FormatSuggestion.model_validate(c.model_dump() if isinstance(c, BaseModel) else c)
                for c in candidates
            ]
            seen: set[str] = set()
            for suggestion in suggestions:
                self._check_template(suggestion.template_id)
                self._require_free_template(hook_id, suggestion.template_id)
                if suggestion.template_id in seen:
                    raise PreconditionError(f"Format {suggestion.template_id} appears twice")
                seen.add(suggestion.template_id)
            return [
                _build(FormatExecution, id=self._new_id(), hook_id=hook_id, **s.model_dump())
                for s in suggestions
            ]
        raise PreconditionError(f"Suggestions cannot be accepted as {kind.value}")

    @sync_operation("accept suggestions")
    async def accept_suggestions(
        self,
        kind: EntityKind | str,
        candidates: list[Any],
        *,
        angle_id: str | None = None,
        pain_desire_id: str | None = None,
        audience_id: str | None = None,
        stage: AwarenessStage | str = AwarenessStage.UNAWARE,
        hook_id: str | None = None,
    ) -> SyncResult:
        """
        Add every candidate in one multi-row insert, or none of them.

        Args:
            kind: Collection the candidates become rows of
            candidates: Suggestion models or dicts of the matching shape
            angle_id: Owning angle, for hook suggestions
            pain_desire_id: Intersection pain/desire, for angle suggestions
            audience_id: Intersection audience, for angle suggestions
            stage: Awareness stage for hook suggestions
            hook_id: Owning hook, for format suggestions

        Returns:
            Result whose entities are the confirmed rows, in candidate order
        """
        try:
            kind = EntityKind(kind)
        except ValueError as e:
            raise PreconditionError(f"Unknown entity kind: {kind}") from e
        if not candidates:
            raise PreconditionError("No suggestions to accept")
        try:
            entities = self._entities_for(
                kind, candidates, angle_id, pain_desire_id, audience_id, stage, hook_id
            )
        except ValidationError as e:
            raise PreconditionError(f"Invalid suggestion: {_describe_validation(e)}") from e

        graph = self.graph
        provisional = [graph.insert(entity) for entity in entities]
        provisional_ids = [entity.id for entity in provisional]
        self._provisional.update(provisional_ids)
        try:
            rows = await self.store.insert_rows(kind.value, [e.insert_row() for e in provisional])
            if len(rows) != len(provisional):
                raise BatchMismatchError(
                    f"expected {len(provisional)} rows back, got {len(rows)}"
                )
            model = type(provisional[0])
            confirmed = [model.from_row(row) for row in rows]
        except Exception as e:
            for entity_id in provisional_ids:
                graph.remove(entity_id)
            return self._remote_failure(
                f"accept {len(provisional)} {kind.value} suggestions", e
            )
        finally:
            self._provisional.difference_update(provisional_ids)

        for old_id, entity in zip(provisional_ids, confirmed):
            graph.replace(old_id, entity)
        logger.info(
            f"Accepted {len(confirmed)} {kind.value} suggestions",
            extra={"project_id": graph.project_id},
        )
        return SyncResult.success(entities=confirmed)

"""In-memory entity graph for one project's creative funnel.

The graph holds six collections keyed by id and enforces the ordering rules:
an appended entity gets the next sort_order in its scope, removals never
renumber, and readers sort by (sort_order, id). Foreign keys are not validated
here; a dangling reference is a normal, tolerated state.
"""

from typing import Any

from app.core.logging import get_logger
from app.core.schemas_funnel import (
    ENTITY_MODELS,
    STAGE_ORDER,
    Audience,
    AwarenessStage,
    EntityKind,
    FormatExecution,
    FunnelEntity,
    GraphSnapshot,
    Hook,
    MessagingAngle,
    PainDesire,
    PainDesireAudienceLink,
    PainDesireKind,
    ProjectInfo,
)

logger = get_logger(__name__)


def _order_key(entity: FunnelEntity) -> tuple[int, str]:
    return (entity.sort_order if entity.sort_order is not None else 0, entity.id)


def _hook_key(hook: Hook) -> tuple[int, int, str]:
    return (STAGE_ORDER.index(hook.awareness_stage), *_order_key(hook))


def _execution_key(execution: FormatExecution) -> tuple[str, int, str]:
    return (execution.hook_id, *_order_key(execution))


class FunnelGraph:
    """Typed collections for one project, with low-level mutators."""

    def __init__(self, project_id: str | None = None, project: ProjectInfo | None = None):
        self.project_id = project_id
        self.project = project
        self._collections: dict[EntityKind, dict[str, FunnelEntity]] = {
            kind: {} for kind in EntityKind
        }

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_rows(
        cls,
        project_id: str,
        project_row: dict[str, Any] | None,
        rows: dict[str, list[dict[str, Any]]],
    ) -> "FunnelGraph":
        """
        Hydrate a graph from remote rows.

        Child tables are filtered to the project: links need both endpoints in
        the project, hooks need a project angle, executions need a kept hook.

        Args:
            project_id: Project the rows were fetched for
            project_row: Row from the projects table, if found
            rows: Table name -> list of rows

        Returns:
            Hydrated graph
        """
        project = ProjectInfo.from_row(project_row) if project_row else None
        graph = cls(project_id=project_id, project=project)

        def _load(kind: EntityKind) -> list[FunnelEntity]:
            model = ENTITY_MODELS[kind]
            return [model.from_row(row) for row in rows.get(kind.value) or []]

        for kind in (EntityKind.AUDIENCE, EntityKind.PAIN_DESIRE, EntityKind.ANGLE):
            for entity in _load(kind):
                graph.insert(entity)

        for link in _load(EntityKind.LINK):
            if graph.get(link.pain_desire_id) is None or graph.get(link.audience_id) is None:
                continue
            if graph.link_for(link.pain_desire_id, link.audience_id) is not None:
                logger.warning(
                    f"Skipping duplicate link row {link.id}",
                    extra={"project_id": project_id},
                )
                continue
            graph.insert(link)

        for hook in _load(EntityKind.HOOK):
            if graph.get(hook.messaging_angle_id) is not None:
                graph.insert(hook)

        for execution in _load(EntityKind.FORMAT_EXECUTION):
            if graph.get(execution.hook_id) is not None:
                graph.insert(execution)

        return graph

    @classmethod
    def from_snapshot(cls, snapshot: GraphSnapshot) -> "FunnelGraph":
        graph = cls(project_id=snapshot.project_id, project=snapshot.project)
        for kind in EntityKind:
            for entity in snapshot.collection(kind):
                graph._collections[kind][entity.id] = entity
        return graph

    def snapshot(self) -> GraphSnapshot:
        """Immutable, deterministically ordered copy of the graph."""
        return GraphSnapshot(
            project_id=self.project_id,
            project=self.project,
            audiences=tuple(self.audiences()),
            pain_desires=tuple(self.pain_desires()),
            links=tuple(self.links()),
            angles=tuple(self.angles()),
            hooks=tuple(self.hooks()),
            format_executions=tuple(self.format_executions()),
        )

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    def get(self, entity_id: str) -> FunnelEntity | None:
        for collection in self._collections.values():
            if entity_id in collection:
                return collection[entity_id]
        return None

    def kind_of(self, entity_id: str) -> EntityKind | None:
        for kind, collection in self._collections.items():
            if entity_id in collection:
                return kind
        return None

    def __contains__(self, entity_id: str) -> bool:
        return self.get(entity_id) is not None

    def __len__(self) -> int:
        return sum(len(c) for c in self._collections.values())

    def _sorted(self, kind: EntityKind) -> list[Any]:
        return sorted(self._collections[kind].values(), key=_order_key)

    def audiences(self) -> list[Audience]:
        return self._sorted(EntityKind.AUDIENCE)

    def pain_desires(self, kind: PainDesireKind | None = None) -> list[PainDesire]:
        items = self._sorted(EntityKind.PAIN_DESIRE)
        if kind is not None:
            items = [pd for pd in items if pd.kind == kind]
        return items

    def links(self) -> list[PainDesireAudienceLink]:
        return self._sorted(EntityKind.LINK)

    def angles(self) -> list[MessagingAngle]:
        return self._sorted(EntityKind.ANGLE)

    def hooks(self, stage: AwarenessStage | None = None) -> list[Hook]:
        items = sorted(self._collections[EntityKind.HOOK].values(), key=_hook_key)
        if stage is not None:
            items = [h for h in items if h.awareness_stage == stage]
        return items

    def format_executions(self, hook_id: str | None = None) -> list[FormatExecution]:
        items = sorted(
            self._collections[EntityKind.FORMAT_EXECUTION].values(), key=_execution_key
        )
        if hook_id is not None:
            items = [fe for fe in items if fe.hook_id == hook_id]
        return items

    def link_for(self, pain_desire_id: str, audience_id: str) -> PainDesireAudienceLink | None:
        for link in self._collections[EntityKind.LINK].values():
            if link.pair == (pain_desire_id, audience_id):
                return link
        return None

    def links_touching(self, entity_id: str) -> list[PainDesireAudienceLink]:
        return [
            link
            for link in self.links()
            if link.pain_desire_id == entity_id or link.audience_id == entity_id
        ]

    def count_in_scope(self, entity: FunnelEntity) -> int:
        """Number of other entities sharing the entity's ordering scope."""
        scope = entity.scope_key()
        return sum(
            1
            for other in self._collections[entity.entity_kind].values()
            if other.id != entity.id and other.scope_key() == scope
        )

    # ------------------------------------------------------------------
    # Low-level mutators
    # ------------------------------------------------------------------

    def insert(self, entity: FunnelEntity) -> FunnelEntity:
        """
        Append an entity to its collection.

        Args:
            entity: Entity to add; a None sort_order becomes the scope count

        Returns:
            The stored entity

        Raises:
            ValueError: If the id is already present, or a link pair exists
        """
        if entity.id in self:
            raise ValueError(f"Entity already in graph: {entity.id}")
        if isinstance(entity, PainDesireAudienceLink) and self.link_for(*entity.pair):
            raise ValueError(f"Link already exists for pair {entity.pair}")

        if entity.sort_order is None:
            entity = entity.model_copy(update={"sort_order": self.count_in_scope(entity)})

        self._collections[entity.entity_kind][entity.id] = entity
        return entity

    def patch(self, entity_id: str, fields: dict[str, Any]) -> FunnelEntity | None:
        """
        Replace some fields of an entity.

        Returns None and leaves the graph unchanged when the id is absent;
        callers check existence before reporting success.
        """
        kind = self.kind_of(entity_id)
        if kind is None:
            return None
        current = self._collections[kind][entity_id]
        updated = current.model_validate({**current.model_dump(), **fields})
        self._collections[kind][entity_id] = updated
        return updated

    def remove(self, entity_id: str) -> list[FunnelEntity]:
        """
        Delete an entity; pain/desires and audiences take their links along.

        Sort orders of the remaining entities are left as they are.

        Returns:
            Every removed entity, the requested one first (empty if absent)
        """
        kind = self.kind_of(entity_id)
        if kind is None:
            return []
        removed = [self._collections[kind].pop(entity_id)]
        if kind in (EntityKind.PAIN_DESIRE, EntityKind.AUDIENCE):
            for link in self.links_touching(entity_id):
                removed.append(self._collections[EntityKind.LINK].pop(link.id))
        return removed

    def replace(self, old_id: str, entity: FunnelEntity) -> bool:
        """
        Swap an entity (usually a provisional one) for its server version.

        Returns:
            False if old_id is no longer in the graph
        """
        kind = self.kind_of(old_id)
        if kind is None:
            return False
        collection = self._collections[kind]
        collection.pop(old_id)
        collection[entity.id] = entity
        return True

    def put(self, entity: FunnelEntity) -> None:
        """Store an entity as-is, overwriting any entity with the same id."""
        self._collections[entity.entity_kind][entity.id] = entity

    def restore(self, entities: list[FunnelEntity]) -> None:
        """Put back entities captured before a failed mutation."""
        for entity in entities:
            if isinstance(entity, PainDesireAudienceLink):
                existing = self.link_for(*entity.pair)
                if existing is not None and existing.id != entity.id:
                    logger.warning(
                        f"Not restoring link {entity.id}: pair was re-linked as {existing.id}",
                        extra={"project_id": self.project_id},
                    )
                    continue
            self.put(entity)

"""Awareness-stage board: five ordered columns of hooks.

A drag-and-drop gesture is reduced to (hook_id, target_stage, target_index).
The new sort_order is the number of other hooks ahead of the drop position in
the destination column; siblings are never renumbered, so an interior drop can
leave equal sort_order values, which readers break by id.
"""

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict

from app.core.funnel_graph import FunnelGraph
from app.core.schemas_funnel import AwarenessStage, GraphSnapshot, Hook


@dataclass(frozen=True)
class StageDefinition:
    stage: AwarenessStage
    label: str
    description: str
    guidance: str  # what hooks written for this stage should do


AWARENESS_STAGES: tuple[StageDefinition, ...] = (
    StageDefinition(
        AwarenessStage.UNAWARE,
        "Unaware",
        "Doesn't know they have a problem",
        "Interrupt the pattern: curiosity gaps, provocative questions or surprising "
        "numbers that surface a frustration the reader has not named yet.",
    ),
    StageDefinition(
        AwarenessStage.PROBLEM_AWARE,
        "Problem Aware",
        "Knows the problem, not the solution",
        "Agitate the pain and validate the struggle, reframe the problem, or tell a "
        "story that mirrors what the reader lives through.",
    ),
    StageDefinition(
        AwarenessStage.SOLUTION_AWARE,
        "Solution Aware",
        "Knows solutions exist, not yours",
        "Differentiate with a unique mechanism, challenge the usual approaches and "
        "point out what other options get wrong without naming them.",
    ),
    StageDefinition(
        AwarenessStage.PRODUCT_AWARE,
        "Product Aware",
        "Knows your product, hasn't bought",
        "Handle objections head-on, stack social proof, show the transformation and "
        "answer 'why now'.",
    ),
    StageDefinition(
        AwarenessStage.MOST_AWARE,
        "Most Aware",
        "Ready to buy, needs a push",
        "Lead with the offer, reverse the risk, set a deadline and make the next step "
        "effortless.",
    ),
)

STAGE_DEFINITIONS: dict[AwarenessStage, StageDefinition] = {d.stage: d for d in AWARENESS_STAGES}
STAGE_LABELS: dict[AwarenessStage, str] = {d.stage: d.label for d in AWARENESS_STAGES}


class BoardColumn(BaseModel):
    model_config = ConfigDict(frozen=True)

    stage: AwarenessStage
    label: str
    description: str
    hooks: tuple[Hook, ...] = ()


@dataclass(frozen=True)
class HookMove:
    """A planned stage/order change for one hook."""

    hook_id: str
    from_stage: AwarenessStage
    from_sort_order: int
    to_stage: AwarenessStage
    to_sort_order: int

    @property
    def fields(self) -> dict[str, Any]:
        return {"awareness_stage": self.to_stage, "sort_order": self.to_sort_order}

    @property
    def revert_fields(self) -> dict[str, Any]:
        return {"awareness_stage": self.from_stage, "sort_order": self.from_sort_order}


def _as_snapshot(source: FunnelGraph | GraphSnapshot) -> GraphSnapshot:
    return source.snapshot() if isinstance(source, FunnelGraph) else source


def stage_column(source: FunnelGraph | GraphSnapshot, stage: AwarenessStage) -> list[Hook]:
    """Hooks in one stage, in display order."""
    return [h for h in _as_snapshot(source).hooks if h.awareness_stage == stage]


def board_columns(source: FunnelGraph | GraphSnapshot) -> list[BoardColumn]:
    snapshot = _as_snapshot(source)
    return [
        BoardColumn(
            stage=definition.stage,
            label=definition.label,
            description=definition.description,
            hooks=tuple(stage_column(snapshot, definition.stage)),
        )
        for definition in AWARENESS_STAGES
    ]


def _find_hook(snapshot: GraphSnapshot, hook_id: str) -> Hook | None:
    return next((h for h in snapshot.hooks if h.id == hook_id), None)


def resolve_drop_target(
    source: FunnelGraph | GraphSnapshot, hook_id: str, over_id: str
) -> tuple[AwarenessStage, int] | None:
    """
    Translate a drop target into (stage, index).

    Args:
        source: Graph or snapshot
        hook_id: Hook being dragged
        over_id: What it was dropped on: a stage key (append to that column)
            or another hook id (take that hook's position)

    Returns:
        Target stage and index, or None when there is nothing to do
    """
    if over_id == hook_id:
        return None
    snapshot = _as_snapshot(source)

    try:
        stage = AwarenessStage(over_id)
    except ValueError:
        stage = None
    if stage is not None:
        others = [h for h in stage_column(snapshot, stage) if h.id != hook_id]
        return stage, len(others)

    over_hook = _find_hook(snapshot, over_id)
    if over_hook is None:
        return None
    others = [h for h in stage_column(snapshot, over_hook.awareness_stage) if h.id != hook_id]
    return over_hook.awareness_stage, others.index(over_hook)


def plan_hook_move(
    source: FunnelGraph | GraphSnapshot,
    hook_id: str,
    target_stage: AwarenessStage | str,
    target_index: int,
) -> HookMove | None:
    """
    Compute the stage/order change for dropping a hook.

    Returns:
        The move, or None when the hook would stay where it is

    Raises:
        LookupError: If the hook is not on the board
        ValueError: If target_stage is not an awareness stage
    """
    snapshot = _as_snapshot(source)
    hook = _find_hook(snapshot, hook_id)
    if hook is None:
        raise LookupError(f"Hook not found: {hook_id}")
    stage = AwarenessStage(target_stage)

    column = stage_column(snapshot, stage)
    others = [h for h in column if h.id != hook_id]
    new_order = max(0, min(target_index, len(others)))
    current_order = hook.sort_order or 0

    if stage == hook.awareness_stage:
        current_index = next(i for i, h in enumerate(column) if h.id == hook_id)
        if new_order in (current_index, current_order):
            return None

    return HookMove(
        hook_id=hook_id,
        from_stage=hook.awareness_stage,
        from_sort_order=current_order,
        to_stage=stage,
        to_sort_order=new_order,
    )


def transition(
    snapshot: GraphSnapshot,
    hook_id: str,
    target_stage: AwarenessStage | str,
    target_index: int,
) -> GraphSnapshot:
    """Pure board transition: the snapshot after dropping the hook."""
    move = plan_hook_move(snapshot, hook_id, target_stage, target_index)
    if move is None:
        return snapshot
    graph = FunnelGraph.from_snapshot(snapshot)
    graph.patch(hook_id, move.fields)
    return graph.snapshot()

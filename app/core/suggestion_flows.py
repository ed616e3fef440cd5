"""Flows that feed AI suggestions straight into the sync engine."""

from app.chains.generate_funnel_suggestions import SuggestionGenerator
from app.core.hook_board import stage_column
from app.core.logging import get_logger
from app.core.schemas_funnel import (
    Audience,
    AwarenessStage,
    FormatExecution,
    Hook,
    LensKey,
    MessagingAngle,
    PainDesire,
)
from app.core.schemas_suggestions import AngleSuggestion, FormatRecommendation, HookSuggestion
from app.core.sync_engine import OptimisticSyncEngine, SyncErrorKind, SyncResult

logger = get_logger(__name__)


def _product_description(engine: OptimisticSyncEngine) -> str | None:
    project = engine.graph.project
    return project.description if project else None


def _not_found(model: type, entity_id: str) -> SyncResult:
    return SyncResult.failure(SyncErrorKind.NOT_FOUND, f"{model.__name__} not found: {entity_id}")


def _intersection_of(
    engine: OptimisticSyncEngine, angle: MessagingAngle | None
) -> tuple[PainDesire | None, Audience | None]:
    if angle is None:
        return None, None
    pain_desire = engine.graph.get(angle.pain_desire_id) if angle.pain_desire_id else None
    audience = engine.graph.get(angle.audience_id) if angle.audience_id else None
    return (
        pain_desire if isinstance(pain_desire, PainDesire) else None,
        audience if isinstance(audience, Audience) else None,
    )


async def fill_empty_lenses(
    engine: OptimisticSyncEngine,
    generator: SuggestionGenerator,
    angle_id: str,
) -> dict[LensKey, SyncResult]:
    """
    Fill every empty lens of an angle with the first suggested candidate.

    Lenses are filled one at a time. A lens with no candidates is skipped and
    a failed save does not stop the remaining lenses.

    Args:
        engine: Engine holding the angle
        generator: Suggestion source
        angle_id: Angle to fill

    Returns:
        Save result per lens that got a candidate
    """
    angle = engine.graph.get(angle_id)
    if not isinstance(angle, MessagingAngle):
        return {}

    pain_desire, audience = _intersection_of(engine, angle)
    results: dict[LensKey, SyncResult] = {}

    for lens in LensKey:
        current = engine.graph.get(angle_id)
        if not isinstance(current, MessagingAngle):
            logger.info(f"Angle {angle_id} left the graph while filling lenses")
            break
        if lens in current.lenses:
            continue

        candidates = await generator.suggest_lens_candidates(
            _product_description(engine),
            current,
            lens,
            pain_desire=pain_desire,
            audience=audience,
        )
        if not candidates:
            continue

        result = await engine.set_angle_lens(angle_id, lens, candidates[0])
        if not result.ok:
            logger.warning(f"Could not save lens {lens.value} on angle {angle_id}: {result.error}")
        results[lens] = result

    return results


async def auto_classify_hook(
    engine: OptimisticSyncEngine,
    generator: SuggestionGenerator,
    hook_id: str,
) -> SyncResult | None:
    """
    Move a hook to the stage the generator recommends, at the end of that column.

    Returns:
        The move result, or None when no recommendation came back
    """
    hook = engine.graph.get(hook_id)
    if not isinstance(hook, Hook):
        return _not_found(Hook, hook_id)

    angle = engine.graph.get(hook.messaging_angle_id)
    recommendation = await generator.classify_awareness_stage(
        hook, angle if isinstance(angle, MessagingAngle) else None
    )
    if recommendation is None:
        return None
    if recommendation.stage == hook.awareness_stage:
        return SyncResult.success(hook)

    others = [h for h in stage_column(engine.graph, recommendation.stage) if h.id != hook_id]
    return await engine.move_hook(hook_id, recommendation.stage, len(others))


async def draft_and_save_concept(
    engine: OptimisticSyncEngine,
    generator: SuggestionGenerator,
    execution_id: str,
) -> SyncResult | None:
    """
    Draft concept notes for a format execution and save them.

    Returns:
        The save result, or None when no draft came back
    """
    execution = engine.graph.get(execution_id)
    if not isinstance(execution, FormatExecution):
        return _not_found(FormatExecution, execution_id)
    if not execution.template_id:
        return SyncResult.failure(
            SyncErrorKind.PRECONDITION, "Pick a format template before drafting a concept"
        )

    hook = engine.graph.get(execution.hook_id)
    if not isinstance(hook, Hook):
        return _not_found(Hook, execution.hook_id)
    angle = engine.graph.get(hook.messaging_angle_id)
    angle = angle if isinstance(angle, MessagingAngle) else None
    pain_desire, audience = _intersection_of(engine, angle)

    notes = await generator.draft_concept_notes(
        hook,
        execution.template_id,
        angle=angle,
        pain_desire=pain_desire,
        audience=audience,
        product_description=_product_description(engine),
    )
    if notes is None:
        return None
    return await engine.update_format_execution(execution_id, concept_notes=notes)


async def suggest_angles_for_pair(
    engine: OptimisticSyncEngine,
    generator: SuggestionGenerator,
    pain_desire_id: str,
    audience_id: str,
) -> list[AngleSuggestion]:
    """Angle candidates for one intersection, steering away from its existing angles."""
    pain_desire = engine.graph.get(pain_desire_id)
    audience = engine.graph.get(audience_id)
    if not isinstance(pain_desire, PainDesire) or not isinstance(audience, Audience):
        return []
    existing = [
        angle
        for angle in engine.graph.angles()
        if angle.pain_desire_id == pain_desire_id and angle.audience_id == audience_id
    ]
    return await generator.suggest_angles(
        _product_description(engine), pain_desire, audience, existing=existing
    )


async def suggest_hooks_for_angle(
    engine: OptimisticSyncEngine,
    generator: SuggestionGenerator,
    angle_id: str,
    stage: AwarenessStage = AwarenessStage.UNAWARE,
    tone: str | None = None,
) -> list[HookSuggestion]:
    angle = engine.graph.get(angle_id)
    if not isinstance(angle, MessagingAngle):
        return []
    pain_desire, audience = _intersection_of(engine, angle)
    return await generator.suggest_hooks(
        _product_description(engine),
        angle,
        stage,
        tone=tone,
        pain_desire=pain_desire,
        audience=audience,
    )


async def recommend_formats_for_hook(
    engine: OptimisticSyncEngine,
    generator: SuggestionGenerator,
    hook_id: str,
) -> list[FormatRecommendation]:
    hook = engine.graph.get(hook_id)
    if not isinstance(hook, Hook):
        return []
    angle = engine.graph.get(hook.messaging_angle_id)
    angle = angle if isinstance(angle, MessagingAngle) else None
    pain_desire, audience = _intersection_of(engine, angle)
    return await generator.recommend_formats(
        hook,
        angle=angle,
        pain_desire=pain_desire,
        audience=audience,
        product_description=_product_description(engine),
    )

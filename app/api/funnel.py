"""API endpoints for the creative funnel: entities, board, intersections and brief."""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from app.api.funnel_sessions import (
    FunnelSessionRegistry,
    get_brief_author,
    get_session_registry,
    get_suggestion_generator,
)
from app.chains.generate_funnel_suggestions import SuggestionGenerator
from app.core.brief_assembly import assemble_brief
from app.core.brief_render import brief_filename, render_brief_markdown
from app.core.hook_board import board_columns, resolve_drop_target
from app.core.intersections import orphaned_angles, pain_audience_matrix, resolve_intersections
from app.core.logging import get_logger
from app.core.schemas_funnel import (
    AwarenessStage,
    EntityKind,
    FunnelEntity,
    HookType,
    LensKey,
    PainDesireKind,
    ProjectInfo,
)
from app.core.suggestion_flows import (
    auto_classify_hook,
    draft_and_save_concept,
    fill_empty_lenses,
    recommend_formats_for_hook,
    suggest_angles_for_pair,
    suggest_hooks_for_angle,
)
from app.core.sync_engine import (
    FunnelLoadError,
    OptimisticSyncEngine,
    ProjectNotFoundError,
    SyncErrorKind,
    SyncResult,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/projects/{project_id}")

ERROR_STATUS = {
    SyncErrorKind.NOT_FOUND: 404,
    SyncErrorKind.PRECONDITION: 422,
    SyncErrorKind.REMOTE: 502,
}


# ============================================================================
# Pydantic Models
# ============================================================================


class ProjectUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    organizing_principle: str | None = None
    principle_rationale: str | None = None
    organizing_approach: PainDesireKind | None = Field(None, description="pain-first or desire-first")


class AudienceCreate(BaseModel):
    name: str = Field(..., min_length=1, description="Audience segment name")
    description: str | None = None


class AudienceUpdate(BaseModel):
    name: str | None = None
    description: str | None = None


class PainDesireCreate(BaseModel):
    kind: PainDesireKind = Field(..., description="pain or desire")
    title: str = Field(..., min_length=1)
    description: str | None = None
    intensity: int | None = Field(None, ge=1, le=10)


class PainDesireUpdate(BaseModel):
    kind: PainDesireKind | None = None
    title: str | None = None
    description: str | None = None
    intensity: int | None = None


class LinkRequest(BaseModel):
    pain_desire_id: str
    audience_id: str


class AngleCreate(BaseModel):
    pain_desire_id: str
    audience_id: str
    title: str = Field(..., min_length=1)
    description: str | None = None
    tone: str | None = None
    lenses: dict[str, str] | None = None


class AngleUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    tone: str | None = None
    lenses: dict[str, str] | None = None


class LensUpdate(BaseModel):
    text: str | None = Field(None, description="Lens text; blank clears the lens")


class HookCreate(BaseModel):
    angle_id: str
    content: str = Field(..., min_length=1)
    type: HookType = HookType.QUESTION
    awareness_stage: AwarenessStage = AwarenessStage.UNAWARE


class HookUpdate(BaseModel):
    content: str | None = None
    type: HookType | None = None


class HookStar(BaseModel):
    starred: bool


class HookMoveRequest(BaseModel):
    """Either a stage and index, or the id the hook was dropped on."""

    stage: AwarenessStage | None = None
    index: int | None = Field(None, ge=0)
    over_id: str | None = Field(None, description="Stage key or hook id under the drop")


class FormatExecutionCreate(BaseModel):
    hook_id: str
    template_id: str | None = None
    concept_notes: str | None = None


class FormatToggle(BaseModel):
    hook_id: str
    template_id: str = Field(..., min_length=1)


class FormatExecutionUpdate(BaseModel):
    template_id: str | None = None
    concept_notes: str | None = None


class AcceptSuggestionsRequest(BaseModel):
    kind: EntityKind
    candidates: list[dict[str, Any]] = Field(..., min_length=1)
    angle_id: str | None = None
    pain_desire_id: str | None = None
    audience_id: str | None = None
    stage: AwarenessStage = AwarenessStage.UNAWARE
    hook_id: str | None = None


class DescriptionRequest(BaseModel):
    product_description: str | None = Field(None, description="Overrides the project description")


class AngleSuggestRequest(BaseModel):
    pain_desire_id: str
    audience_id: str


class HookSuggestRequest(BaseModel):
    angle_id: str
    stage: AwarenessStage = AwarenessStage.UNAWARE
    tone: str | None = None


class FormatSuggestRequest(BaseModel):
    hook_id: str

class SyncResponse(BaseModel):
    entity: dict[str, Any] | None = None
    entities: list[dict[str, Any]] = Field(default_factory=list)


# ============================================================================
# Dependencies and helpers
# ============================================================================


async def get_engine(
    project_id: str = Path(..., description="Project ID"),
    registry: FunnelSessionRegistry = Depends(get_session_registry),
) -> OptimisticSyncEngine:
    try:
        return await registry.open(project_id)
    except ProjectNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except FunnelLoadError as e:
        logger.error(f"Failed to load funnel: {e}", extra={"project_id": project_id})
        raise HTTPException(status_code=502, detail=str(e)) from e


def _entity_out(entity: FunnelEntity | ProjectInfo | None) -> dict[str, Any] | None:
    return entity.model_dump(mode="json") if entity is not None else None


def _respond(result: SyncResult) -> SyncResponse:
    if not result.ok:
        raise HTTPException(status_code=ERROR_STATUS[result.error_kind], detail=result.error)
    return SyncResponse(
        entity=_entity_out(result.entity),
        entities=[_entity_out(e) for e in result.entities],
    )


def _description(engine: OptimisticSyncEngine, body: DescriptionRequest | None) -> str | None:
    if body is not None and body.product_description:
        return body.product_description
    project = engine.graph.project
    return project.description if project else None


# ============================================================================
# Graph
# ============================================================================


@router.get("/funnel")
async def get_funnel(engine: OptimisticSyncEngine = Depends(get_engine)) -> dict[str, Any]:
    """Current funnel graph for a project, hydrating it on first access."""
    return engine.snapshot().model_dump(mode="json")


@router.delete("/funnel")
async def discard_funnel(
    project_id: str = Path(..., description="Project ID"),
    registry: FunnelSessionRegistry = Depends(get_session_registry),
) -> dict[str, Any]:
    """Drop the cached graph; the next request reloads from the store."""
    return {"discarded": registry.discard(project_id)}


@router.patch("", response_model=SyncResponse)
async def update_project(
    body: ProjectUpdate, engine: OptimisticSyncEngine = Depends(get_engine)
) -> SyncResponse:
    """Edit the project's name, description or organizing principle."""
    return _respond(await engine.update_project(**body.model_dump(exclude_unset=True)))


# ============================================================================
# Audiences
# ============================================================================


@router.post("/audiences", response_model=SyncResponse)
async def create_audience(
    body: AudienceCreate, engine: OptimisticSyncEngine = Depends(get_engine)
) -> SyncResponse:
    return _respond(await engine.create_audience(body.name, body.description))


@router.patch("/audiences/{audience_id}", response_model=SyncResponse)
async def update_audience(
    audience_id: str, body: AudienceUpdate, engine: OptimisticSyncEngine = Depends(get_engine)
) -> SyncResponse:
    return _respond(await engine.update_audience(audience_id, **body.model_dump(exclude_unset=True)))


@router.delete("/audiences/{audience_id}", response_model=SyncResponse)
async def delete_audience(
    audience_id: str, engine: OptimisticSyncEngine = Depends(get_engine)
) -> SyncResponse:
    """Delete an audience and its pain/desire links."""
    return _respond(await engine.delete_audience(audience_id))


# ============================================================================
# Pain points and desires
# ============================================================================


@router.post("/pain-desires", response_model=SyncResponse)
async def create_pain_desire(
    body: PainDesireCreate, engine: OptimisticSyncEngine = Depends(get_engine)
) -> SyncResponse:
    return _respond(
        await engine.create_pain_desire(body.kind, body.title, body.description, body.intensity)
    )


@router.patch("/pain-desires/{pain_desire_id}", response_model=SyncResponse)
async def update_pain_desire(
    pain_desire_id: str, body: PainDesireUpdate, engine: OptimisticSyncEngine = Depends(get_engine)
) -> SyncResponse:
    return _respond(
        await engine.update_pain_desire(pain_desire_id, **body.model_dump(exclude_unset=True))
    )


@router.delete("/pain-desires/{pain_desire_id}", response_model=SyncResponse)
async def delete_pain_desire(
    pain_desire_id: str, engine: OptimisticSyncEngine = Depends(get_engine)
) -> SyncResponse:
    return _respond(await engine.delete_pain_desire(pain_desire_id))


# ============================================================================
# Links and intersections
# ============================================================================


@router.post("/links", response_model=SyncResponse)
async def create_link(
    body: LinkRequest, engine: OptimisticSyncEngine = Depends(get_engine)
) -> SyncResponse:
    return _respond(await engine.link(body.pain_desire_id, body.audience_id))


@router.post("/links/toggle", response_model=SyncResponse)
async def toggle_link(
    body: LinkRequest, engine: OptimisticSyncEngine = Depends(get_engine)
) -> SyncResponse:
    """Flip one cell of the pain/desire x audience matrix."""
    return _respond(await engine.toggle_link(body.pain_desire_id, body.audience_id))


@router.delete("/links/{link_id}", response_model=SyncResponse)
async def delete_link(link_id: str, engine: OptimisticSyncEngine = Depends(get_engine)) -> SyncResponse:
    return _respond(await engine.unlink(link_id))


@router.get("/intersections")
async def get_intersections(engine: OptimisticSyncEngine = Depends(get_engine)) -> dict[str, Any]:
    """Linked pairs with their angles, plus angles whose pair is no longer linked."""
    snapshot = engine.snapshot()
    return {
        "intersections": [view.model_dump(mode="json") for view in resolve_intersections(snapshot)],
        "orphaned_angles": [angle.model_dump(mode="json") for angle in orphaned_angles(snapshot)],
    }


@router.get("/matrix")
async def get_matrix(engine: OptimisticSyncEngine = Depends(get_engine)) -> dict[str, Any]:
    return pain_audience_matrix(engine.snapshot()).model_dump(mode="json")


# ============================================================================
# Messaging angles
# ============================================================================


@router.post("/angles", response_model=SyncResponse)
async def create_angle(
    body: AngleCreate, engine: OptimisticSyncEngine = Depends(get_engine)
) -> SyncResponse:
    return _respond(
        await engine.create_angle(
            body.pain_desire_id,
            body.audience_id,
            body.title,
            description=body.description,
            tone=body.tone,
            lenses=body.lenses,
        )
    )


@router.patch("/angles/{angle_id}", response_model=SyncResponse)
async def update_angle(
    angle_id: str, body: AngleUpdate, engine: OptimisticSyncEngine = Depends(get_engine)
) -> SyncResponse:
    return _respond(await engine.update_angle(angle_id, **body.model_dump(exclude_unset=True)))


@router.put("/angles/{angle_id}/lenses/{lens}", response_model=SyncResponse)
async def set_angle_lens(
    angle_id: str,
    lens: LensKey,
    body: LensUpdate,
    engine: OptimisticSyncEngine = Depends(get_engine),
) -> SyncResponse:
    return _respond(await engine.set_angle_lens(angle_id, lens, body.text))


@router.delete("/angles/{angle_id}", response_model=SyncResponse)
async def delete_angle(angle_id: str, engine: OptimisticSyncEngine = Depends(get_engine)) -> SyncResponse:
    return _respond(await engine.delete_angle(angle_id))


# ============================================================================
# Hooks and the awareness board
# ============================================================================


@router.post("/hooks", response_model=SyncResponse)
async def create_hook(body: HookCreate, engine: OptimisticSyncEngine = Depends(get_engine)) -> SyncResponse:
    return _respond(
        await engine.create_hook(body.angle_id, body.content, body.type, body.awareness_stage)
    )


@router.patch("/hooks/{hook_id}", response_model=SyncResponse)
async def update_hook(
    hook_id: str, body: HookUpdate, engine: OptimisticSyncEngine = Depends(get_engine)
) -> SyncResponse:
    return _respond(await engine.update_hook(hook_id, **body.model_dump(exclude_unset=True)))


@router.post("/hooks/{hook_id}/star", response_model=SyncResponse)
async def star_hook(
    hook_id: str, body: HookStar, engine: OptimisticSyncEngine = Depends(get_engine)
) -> SyncResponse:
    return _respond(await engine.set_hook_starred(hook_id, body.starred))


@router.post("/hooks/{hook_id}/move", response_model=SyncResponse)
async def move_hook(
    hook_id: str, body: HookMoveRequest, engine: OptimisticSyncEngine = Depends(get_engine)
) -> SyncResponse:
    """
    Move a hook on the awareness board.

    Args:
        hook_id: Hook being dragged
        body: Target stage and index, or the drop target id

    Returns:
        The hook after the move (unchanged for a no-op drop)
    """
    if body.over_id is not None:
        target = resolve_drop_target(engine.snapshot(), hook_id, body.over_id)
        if target is None:
            current = engine.graph.get(hook_id)
            if current is None:
                raise HTTPException(status_code=404, detail=f"Hook not found: {hook_id}")
            return SyncResponse(entity=_entity_out(current))
        stage, index = target
    elif body.stage is not None and body.index is not None:
        stage, index = body.stage, body.index
    else:
        raise HTTPException(status_code=422, detail="Provide over_id, or stage and index")
    return _respond(await engine.move_hook(hook_id, stage, index))


@router.delete("/hooks/{hook_id}", response_model=SyncResponse)
async def delete_hook(hook_id: str, engine: OptimisticSyncEngine = Depends(get_engine)) -> SyncResponse:
    return _respond(await engine.delete_hook(hook_id))


@router.get("/board")
async def get_board(engine: OptimisticSyncEngine = Depends(get_engine)) -> dict[str, Any]:
    return {"columns": [column.model_dump(mode="json") for column in board_columns(engine.snapshot())]}


# ============================================================================
# Format executions
# ============================================================================


@router.post("/format-executions", response_model=SyncResponse)
async def create_format_execution(
    body: FormatExecutionCreate, engine: OptimisticSyncEngine = Depends(get_engine)
) -> SyncResponse:
    return _respond(
        await engine.create_format_execution(body.hook_id, body.template_id, body.concept_notes)
    )


@router.patch("/format-executions/{execution_id}", response_model=SyncResponse)
async def update_format_execution(
    execution_id: str,
    body: FormatExecutionUpdate,
    engine: OptimisticSyncEngine = Depends(get_engine),
) -> SyncResponse:
    return _respond(
        await engine.update_format_execution(execution_id, **body.model_dump(exclude_unset=True))
    )


@router.delete("/format-executions/{execution_id}", response_model=SyncResponse)
async def delete_format_execution(
    execution_id: str, engine: OptimisticSyncEngine = Depends(get_engine)
) -> SyncResponse:
    return _respond(await engine.delete_format_execution(execution_id))


@router.post("/format-executions/toggle", response_model=SyncResponse)
async def toggle_format(
    body: FormatToggle, engine: OptimisticSyncEngine = Depends(get_engine)
) -> SyncResponse:
    """Select a template for a hook, or drop it if the hook already uses it."""
    return _respond(await engine.toggle_format(body.hook_id, body.template_id))


@router.post("/hooks/{hook_id}/formats/select-all", response_model=SyncResponse)
async def select_all_formats(
    hook_id: str, engine: OptimisticSyncEngine = Depends(get_engine)
) -> SyncResponse:
    return _respond(await engine.select_all_formats(hook_id))


@router.delete("/hooks/{hook_id}/formats", response_model=SyncResponse)
async def clear_formats(hook_id: str, engine: OptimisticSyncEngine = Depends(get_engine)) -> SyncResponse:
    """Drop every templated format execution of a hook."""
    return _respond(await engine.clear_formats_for_hook(hook_id))


# ============================================================================
# Suggestions
# ============================================================================


@router.post("/suggestions/approach")
async def suggest_approach(
    body: DescriptionRequest | None = None,
    engine: OptimisticSyncEngine = Depends(get_engine),
    generator: SuggestionGenerator = Depends(get_suggestion_generator),
) -> dict[str, Any]:
    """Pain-first or desire-first recommendation; null when none is available."""
    recommendation = await generator.recommend_approach(_description(engine, body) or "")
    return {"recommendation": recommendation.model_dump(mode="json") if recommendation else None}


@router.post("/suggestions/foundation")
async def suggest_foundation(
    body: DescriptionRequest | None = None,
    engine: OptimisticSyncEngine = Depends(get_engine),
    generator: SuggestionGenerator = Depends(get_suggestion_generator),
) -> dict[str, Any]:
    """Pain point, desire and audience candidates for the project."""
    project = engine.graph.project
    suggestions = await generator.suggest_foundation(
        _description(engine, body) or "",
        project.organizing_approach if project else None,
    )
    return suggestions.model_dump(mode="json")


@router.post("/suggestions/angles")
async def suggest_angles(
    body: AngleSuggestRequest,
    engine: OptimisticSyncEngine = Depends(get_engine),
    generator: SuggestionGenerator = Depends(get_suggestion_generator),
) -> dict[str, Any]:
    for entity_id in (body.pain_desire_id, body.audience_id):
        if engine.graph.get(entity_id) is None:
            raise HTTPException(status_code=404, detail=f"Not found: {entity_id}")
    angles = await suggest_angles_for_pair(engine, generator, body.pain_desire_id, body.audience_id)
    return {"angles": [angle.model_dump(mode="json") for angle in angles]}


@router.post("/suggestions/hooks")
async def suggest_hooks(
    body: HookSuggestRequest,
    engine: OptimisticSyncEngine = Depends(get_engine),
    generator: SuggestionGenerator = Depends(get_suggestion_generator),
) -> dict[str, Any]:
    if engine.graph.get(body.angle_id) is None:
        raise HTTPException(status_code=404, detail=f"Angle not found: {body.angle_id}")
    hooks = await suggest_hooks_for_angle(engine, generator, body.angle_id, body.stage, body.tone)
    return {"hooks": [hook.model_dump(mode="json") for hook in hooks]}


@router.post("/suggestions/formats")
async def suggest_formats(
    body: FormatSuggestRequest,
    engine: OptimisticSyncEngine = Depends(get_engine),
    generator: SuggestionGenerator = Depends(get_suggestion_generator),
) -> dict[str, Any]:
    """Ranked catalog templates for a hook."""
    if engine.graph.get(body.hook_id) is None:
        raise HTTPException(status_code=404, detail=f"Hook not found: {body.hook_id}")
    recommendations = await recommend_formats_for_hook(engine, generator, body.hook_id)
    return {"recommendations": [r.model_dump(mode="json") for r in recommendations]}


@router.post("/suggestions/accept", response_model=SyncResponse)
async def accept_suggestions(
    body: AcceptSuggestionsRequest, engine: OptimisticSyncEngine = Depends(get_engine)
) -> SyncResponse:
    """Add selected suggestion candidates in one batch; all or none are kept."""
    return _respond(
        await engine.accept_suggestions(
            body.kind,
            body.candidates,
            angle_id=body.angle_id,
            pain_desire_id=body.pain_desire_id,
            audience_id=body.audience_id,
            stage=body.stage,
            hook_id=body.hook_id,
        )
    )


@router.post("/angles/{angle_id}/lenses/fill")
async def fill_lenses(
    angle_id: str,
    engine: OptimisticSyncEngine = Depends(get_engine),
    generator: SuggestionGenerator = Depends(get_suggestion_generator),
) -> dict[str, Any]:
    """Fill every empty lens of an angle from suggestions."""
    if engine.graph.get(angle_id) is None:
        raise HTTPException(status_code=404, detail=f"Angle not found: {angle_id}")
    results = await fill_empty_lenses(engine, generator, angle_id)
    return {
        "filled": [lens.value for lens, result in results.items() if result.ok],
        "failed": {lens.value: result.error for lens, result in results.items() if not result.ok},
    }


@router.post("/hooks/{hook_id}/classify", response_model=SyncResponse)
async def classify_hook(
    hook_id: str,
    engine: OptimisticSyncEngine = Depends(get_engine),
    generator: SuggestionGenerator = Depends(get_suggestion_generator),
) -> SyncResponse:
    """Move a hook to its suggested awareness stage."""
    result = await auto_classify_hook(engine, generator, hook_id)
    if result is None:
        raise HTTPException(status_code=503, detail="No stage suggestion available")
    return _respond(result)


@router.post("/format-executions/{execution_id}/draft", response_model=SyncResponse)
async def draft_concept(
    execution_id: str,
    engine: OptimisticSyncEngine = Depends(get_engine),
    generator: SuggestionGenerator = Depends(get_suggestion_generator),
) -> SyncResponse:
    """Draft and save concept notes for a format execution."""
    result = await draft_and_save_concept(engine, generator, execution_id)
    if result is None:
        raise HTTPException(status_code=503, detail="No concept draft available")
    return _respond(result)


# ============================================================================
# Brief export
# ============================================================================


def _parse_sections(sections: str | None) -> list[str] | None:
    if sections is None:
        return None
    return [key.strip() for key in sections.split(",") if key.strip()]


@router.get("/brief")
async def get_brief(
    sections: str | None = Query(None, description="Comma-separated section keys; all when omitted"),
    engine: OptimisticSyncEngine = Depends(get_engine),
    author: str = Depends(get_brief_author),
) -> dict[str, Any]:
    """Assembled brief as JSON."""
    try:
        document = assemble_brief(engine.snapshot(), _parse_sections(sections), author=author)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=f"Unknown brief section: {e}") from e
    return document.model_dump(mode="json")


@router.get("/brief/markdown", response_class=PlainTextResponse)
async def get_brief_markdown(
    sections: str | None = Query(None, description="Comma-separated section keys; all when omitted"),
    engine: OptimisticSyncEngine = Depends(get_engine),
    author: str = Depends(get_brief_author),
) -> PlainTextResponse:
    """Assembled brief as a Markdown download."""
    try:
        document = assemble_brief(engine.snapshot(), _parse_sections(sections), author=author)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=f"Unknown brief section: {e}") from e

    filename = brief_filename(document.cover.project_name)
    return PlainTextResponse(
        render_brief_markdown(document),
        media_type="text/markdown",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control": "no-store",
        },
    )

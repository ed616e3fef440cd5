"""Brief assembly: join a funnel snapshot into one ordered, denormalized document.

Assembly is read-only and total. A reference to an entity that is no longer
in the graph is labelled ("Unknown", "Unknown Angle") rather than raised.
"""

from collections.abc import Iterable
from datetime import datetime, timezone

from app.core.format_templates import template_category, template_label
from app.core.funnel_graph import FunnelGraph
from app.core.hook_board import STAGE_LABELS
from app.core.intersections import pain_audience_matrix
from app.core.logging import get_logger
from app.core.schemas_brief import (
    ALL_SECTIONS,
    UNKNOWN,
    UNKNOWN_ANGLE,
    BriefAngle,
    BriefAngleGroup,
    BriefAudience,
    BriefConceptGroup,
    BriefCover,
    BriefDocument,
    BriefFormatConcept,
    BriefFunnelAngle,
    BriefFunnelStage,
    BriefHook,
    BriefHookGroup,
    BriefMapRow,
    BriefPainAudienceMap,
    BriefPainDesire,
    BriefPrinciple,
    BriefSection,
)
from app.core.schemas_funnel import (
    STAGE_ORDER,
    Audience,
    GraphSnapshot,
    Hook,
    MessagingAngle,
    PainDesire,
    PainDesireKind,
)

logger = get_logger(__name__)

DEFAULT_AUTHOR = "flnt"


class _Lookup:
    """Id maps over one snapshot, with placeholder-aware resolution."""

    def __init__(self, snapshot: GraphSnapshot):
        self.audiences: dict[str, Audience] = {a.id: a for a in snapshot.audiences}
        self.pain_desires: dict[str, PainDesire] = {pd.id: pd for pd in snapshot.pain_desires}
        self.angles: dict[str, MessagingAngle] = {a.id: a for a in snapshot.angles}
        self.hooks: dict[str, Hook] = {h.id: h for h in snapshot.hooks}

    def intersection(self, angle: MessagingAngle | None) -> tuple[str, PainDesireKind | None, str]:
        """(pain/desire title, pain/desire kind, audience name) behind an angle."""
        pd = self.pain_desires.get(angle.pain_desire_id) if angle and angle.pain_desire_id else None
        audience = self.audiences.get(angle.audience_id) if angle and angle.audience_id else None
        return (
            pd.title if pd else UNKNOWN,
            pd.kind if pd else None,
            audience.name if audience else UNKNOWN,
        )

    def angle_of(self, hook: Hook | None) -> MessagingAngle | None:
        return self.angles.get(hook.messaging_angle_id) if hook else None


def format_generated_at(moment: datetime) -> str:
    """Long-form date, e.g. 'March 4, 2026'."""
    return f"{moment:%B} {moment.day}, {moment.year}"


def parse_sections(included_sections: Iterable[BriefSection | str] | None) -> tuple[BriefSection, ...]:
    """
    Normalize a section selection, keeping canonical order.

    Raises:
        ValueError: If a key is not a known section
    """
    if included_sections is None:
        return ALL_SECTIONS
    requested = {BriefSection(key) for key in included_sections}
    return tuple(section for section in ALL_SECTIONS if section in requested)


def _brief_angle(angle: MessagingAngle, lookup: _Lookup) -> BriefAngle:
    pd_title, pd_kind, audience_name = lookup.intersection(angle)
    return BriefAngle(
        title=angle.title,
        description=angle.description,
        tone=angle.tone,
        origin=angle.origin,
        pain_desire_title=pd_title,
        pain_desire_kind=pd_kind,
        audience_name=audience_name,
    )


def _brief_hook(hook: Hook, lookup: _Lookup) -> BriefHook:
    angle = lookup.angle_of(hook)
    pd_title, pd_kind, audience_name = lookup.intersection(angle)
    return BriefHook(
        content=hook.content,
        type=hook.type,
        awareness_stage=hook.awareness_stage,
        stage_label=STAGE_LABELS[hook.awareness_stage],
        starred=hook.starred,
        origin=hook.origin,
        angle_title=angle.title if angle else UNKNOWN_ANGLE,
        pain_desire_title=pd_title,
        pain_desire_kind=pd_kind,
        audience_name=audience_name,
    )


def _group_angles(angles: list[BriefAngle]) -> tuple[BriefAngleGroup, ...]:
    groups: dict[tuple[str, str], list[BriefAngle]] = {}
    for angle in angles:
        groups.setdefault((angle.pain_desire_title, angle.audience_name), []).append(angle)
    return tuple(
        BriefAngleGroup(
            pain_desire_title=pd_title,
            pain_desire_kind=members[0].pain_desire_kind,
            audience_name=audience_name,
            angles=tuple(members),
        )
        for (pd_title, audience_name), members in groups.items()
    )


def _group_hooks(hooks: list[BriefHook]) -> tuple[BriefHookGroup, ...]:
    groups: dict[str, list[BriefHook]] = {}
    for hook in hooks:
        groups.setdefault(hook.angle_title, []).append(hook)
    return tuple(
        BriefHookGroup(angle_title=title, hooks=tuple(members))
        for title, members in groups.items()
    )


def _funnel_map(hooks: list[BriefHook]) -> tuple[BriefFunnelStage, ...]:
    stages: list[BriefFunnelStage] = []
    for stage in STAGE_ORDER:
        starred = [h for h in hooks if h.starred and h.awareness_stage == stage]
        if not starred:
            continue
        by_angle: dict[str, list[BriefHook]] = {}
        for hook in starred:
            by_angle.setdefault(hook.angle_title, []).append(hook)
        stages.append(
            BriefFunnelStage(
                stage=stage,
                label=STAGE_LABELS[stage],
                angles=tuple(
                    BriefFunnelAngle(
                        angle_title=title,
                        pain_desire_title=members[0].pain_desire_title,
                        pain_desire_kind=members[0].pain_desire_kind,
                        audience_name=members[0].audience_name,
                        hooks=tuple(h.content for h in members),
                    )
                    for title, members in by_angle.items()
                ),
            )
        )
    return tuple(stages)


def _format_concepts(snapshot: GraphSnapshot, lookup: _Lookup) -> tuple[BriefConceptGroup, ...]:
    by_hook: dict[str, list[BriefFormatConcept]] = {}
    for execution in snapshot.format_executions:
        notes = (execution.concept_notes or "").strip()
        if not notes:
            continue
        by_hook.setdefault(execution.hook_id, []).append(
            BriefFormatConcept(
                template_id=execution.template_id,
                template_label=template_label(execution.template_id),
                category=template_category(execution.template_id),
                concept_notes=notes,
            )
        )

    hook_position = {hook.id: i for i, hook in enumerate(snapshot.hooks)}
    # Hooks are already in stage order; concepts for missing hooks go last
    ordered = sorted(by_hook, key=lambda hook_id: (hook_position.get(hook_id, len(hook_position)), hook_id))

    groups = []
    for hook_id in ordered:
        hook = lookup.hooks.get(hook_id)
        angle = lookup.angle_of(hook)
        pd_title, pd_kind, audience_name = lookup.intersection(angle)
        groups.append(
            BriefConceptGroup(
                hook_id=hook_id,
                hook_content=hook.content if hook else "",
                hook_starred=hook.starred if hook else False,
                awareness_stage=hook.awareness_stage if hook else None,
                stage_label=STAGE_LABELS[hook.awareness_stage] if hook else UNKNOWN,
                angle_title=angle.title if angle else UNKNOWN_ANGLE,
                pain_desire_title=pd_title,
                pain_desire_kind=pd_kind,
                audience_name=audience_name,
                concepts=tuple(by_hook[hook_id]),
            )
        )
    return tuple(groups)


def _pain_audience_map(snapshot: GraphSnapshot) -> BriefPainAudienceMap:
    matrix = pain_audience_matrix(snapshot)
    return BriefPainAudienceMap(
        audiences=tuple(a.name for a in matrix.audiences),
        rows=tuple(
            BriefMapRow(
                pain_desire_title=row.pain_desire.title,
                kind=row.pain_desire.kind,
                linked=row.linked,
            )
            for row in matrix.rows
        ),
    )


def assemble_brief(
    source: FunnelGraph | GraphSnapshot,
    included_sections: Iterable[BriefSection | str] | None = None,
    generated_at: datetime | None = None,
    author: str | None = None,
) -> BriefDocument:
    """
    Assemble the creative brief for a funnel.

    Args:
        source: Live graph (snapshotted first) or snapshot
        included_sections: Sections to fill; all when None. The cover is always filled.
        generated_at: Timestamp printed on the cover; now (UTC) when None
        author: Name stamped on the cover; DEFAULT_AUTHOR when None

    Returns:
        Immutable brief document

    Raises:
        ValueError: If included_sections names an unknown section
    """
    snapshot = source.snapshot() if isinstance(source, FunnelGraph) else source
    sections = parse_sections(included_sections)
    lookup = _Lookup(snapshot)

    project = snapshot.project
    project_name = project.name if project and project.name else "Untitled project"
    pains = [pd for pd in snapshot.pain_desires if pd.kind == PainDesireKind.PAIN]
    desires = [pd for pd in snapshot.pain_desires if pd.kind == PainDesireKind.DESIRE]
    hooks = [_brief_hook(hook, lookup) for hook in snapshot.hooks]

    cover = BriefCover(
        title=f"{project_name}: Creative Strategy Brief",
        project_name=project_name,
        project_description=project.description if project else None,
        organizing_principle=project.organizing_principle if project else None,
        generated_at=format_generated_at(generated_at or datetime.now(timezone.utc)),
        author=author or DEFAULT_AUTHOR,
        audience_count=len(snapshot.audiences),
        pain_count=len(pains),
        desire_count=len(desires),
        angle_count=len(snapshot.angles),
        hook_count=len(snapshot.hooks),
        starred_hook_count=sum(1 for h in snapshot.hooks if h.starred),
    )

    def wanted(section: BriefSection) -> bool:
        return section in sections

    principle = None
    if wanted(BriefSection.ORGANIZING_PRINCIPLE) and project and (
        project.organizing_principle or project.organizing_approach
    ):
        principle = BriefPrinciple(
            principle=project.organizing_principle,
            rationale=project.principle_rationale,
            approach=project.organizing_approach,
        )

    document = BriefDocument(
        project_id=snapshot.project_id,
        included_sections=sections,
        cover=cover,
        organizing_principle=principle,
        pain_audience_map=(
            _pain_audience_map(snapshot)
            if wanted(BriefSection.PAIN_AUDIENCE_MAP)
            else BriefPainAudienceMap()
        ),
        funnel_map=_funnel_map(hooks) if wanted(BriefSection.FUNNEL_MAP) else (),
        audiences=(
            tuple(BriefAudience(name=a.name, description=a.description) for a in snapshot.audiences)
            if wanted(BriefSection.AUDIENCES)
            else ()
        ),
        pain_points=(
            tuple(
                BriefPainDesire(kind=pd.kind, title=pd.title, description=pd.description, intensity=pd.intensity)
                for pd in pains
            )
            if wanted(BriefSection.PAIN_DESIRES)
            else ()
        ),
        desires=(
            tuple(
                BriefPainDesire(kind=pd.kind, title=pd.title, description=pd.description, intensity=pd.intensity)
                for pd in desires
            )
            if wanted(BriefSection.PAIN_DESIRES)
            else ()
        ),
        angle_groups=(
            _group_angles([_brief_angle(angle, lookup) for angle in snapshot.angles])
            if wanted(BriefSection.MESSAGING_ANGLES)
            else ()
        ),
        hook_groups=_group_hooks(hooks) if wanted(BriefSection.HOOKS) else (),
        format_concepts=(
            _format_concepts(snapshot, lookup) if wanted(BriefSection.FORMAT_CONCEPTS) else ()
        ),
    )

    logger.info(
        f"Assembled brief for project {snapshot.project_id}",
        extra={
            "project_id": snapshot.project_id,
            "sections": len(sections),
            "format_concepts": document.format_concept_count,
        },
    )
    return document

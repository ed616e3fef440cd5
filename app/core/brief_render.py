"""Markdown rendering for assembled creative briefs."""

import re

from app.core.schemas_brief import (
    BriefConceptGroup,
    BriefDocument,
    BriefFunnelStage,
    BriefPainAudienceMap,
    BriefPainDesire,
    BriefPrinciple,
    BriefSection,
)
from app.core.schemas_funnel import HOOK_TYPE_LABELS, AngleOrigin, HookOrigin, PainDesireKind

PRINCIPLE_LABELS = {
    "brand": "Brand",
    "campaign": "Campaign",
    "audience": "Audience",
    "channel": "Channel",
    "product": "Product",
    "theme": "Theme",
}

# Wider maps get an overflow note instead of more columns
MAX_MAP_AUDIENCES = 5


def brief_filename(project_name: str, extension: str = "md") -> str:
    """Download filename for a project's brief, e.g. 'acme-launch-brief.md'."""
    slug = re.sub(r"[^a-z0-9]+", "-", project_name.lower()).strip("-")
    return f"{slug or 'project'}-brief.{extension}"


def _plural(count: int, singular: str, plural: str | None = None) -> str:
    return f"{count} {singular if count == 1 else (plural or singular + 's')}"


def _kind_badge(kind: PainDesireKind | None) -> str:
    if kind is None:
        return ""
    return "[Pain] " if kind == PainDesireKind.PAIN else "[Desire] "


def _render_cover(document: BriefDocument) -> list[str]:
    cover = document.cover
    lines = [f"# {cover.title}", ""]
    if cover.organizing_principle:
        label = PRINCIPLE_LABELS.get(cover.organizing_principle, cover.organizing_principle)
        lines += [f"**{label}**", ""]
    if cover.project_description:
        lines += [cover.project_description, ""]

    stats = [
        _plural(cover.audience_count, "audience"),
        _plural(cover.pain_count, "pain point"),
    ]
    if cover.desire_count:
        stats.append(_plural(cover.desire_count, "desire"))
    stats += [
        _plural(cover.angle_count, "angle"),
        _plural(cover.hook_count, "hook"),
    ]
    lines += [" · ".join(stats), "", f"_Generated {cover.generated_at} by {cover.author}_", ""]
    return lines


def _render_principle(principle: BriefPrinciple) -> list[str]:
    lines = ["## Organizing Principle", ""]
    tags = []
    if principle.principle:
        tags.append(PRINCIPLE_LABELS.get(principle.principle, principle.principle))
    if principle.approach:
        tags.append("Pain-First" if principle.approach == PainDesireKind.PAIN else "Desire-First")
    if tags:
        lines += [" · ".join(f"**{t}**" for t in tags), ""]
    lines += [principle.rationale or "_No rationale recorded._", ""]
    return lines


def _cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")


def _render_map(pain_map: BriefPainAudienceMap) -> list[str]:
    audiences = pain_map.audiences[:MAX_MAP_AUDIENCES]
    overflow = len(pain_map.audiences) - len(audiences)

    lines = ["## Pain–Audience Map", ""]
    lines.append("| | " + " | ".join(_cell(name) for name in audiences) + " |")
    lines.append("|---|" + "---|" * len(audiences))
    for row in pain_map.rows:
        cells = ["●" if linked else "" for linked in row.linked[:MAX_MAP_AUDIENCES]]
        label = f"{_kind_badge(row.kind)}{_cell(row.pain_desire_title)}"
        lines.append(f"| {label} | " + " | ".join(cells) + " |")
    if overflow:
        lines += ["", f"_+{overflow} more {'audience' if overflow == 1 else 'audiences'} not shown_"]
    lines.append("")
    return lines


def _render_funnel_map(stages: tuple[BriefFunnelStage, ...]) -> list[str]:
    lines = ["## Funnel Map", ""]
    for stage in stages:
        lines += [f"### {stage.label}", ""]
        for angle in stage.angles:
            lines.append(
                f"**{_kind_badge(angle.pain_desire_kind)}{angle.angle_title}** "
                f"({angle.pain_desire_title} × {angle.audience_name})"
            )
            lines.append("")
            lines += [f"- ★ {content}" for content in angle.hooks]
            lines.append("")
    return lines


def _render_pain_desires(title: str, items: tuple[BriefPainDesire, ...]) -> list[str]:
    lines = [f"## {title}", ""]
    for item in items:
        intensity = f" (intensity {item.intensity}/10)" if item.intensity else ""
        lines.append(f"- **{item.title}**{intensity}")
        if item.description:
            lines.append(f"  {item.description}")
    lines.append("")
    return lines


def _render_concepts(groups: tuple[BriefConceptGroup, ...]) -> list[str]:
    lines = ["## Format Concepts", ""]
    for group in groups:
        star = "★ " if group.hook_starred else ""
        lines.append(
            f"### [{group.stage_label}] {_kind_badge(group.pain_desire_kind)}{group.angle_title}"
        )
        lines += [
            f"_{group.pain_desire_title} × {group.audience_name}_",
            "",
            f"> {star}{group.hook_content}",
            "",
        ]
        for concept in group.concepts:
            lines.append(f"- **{concept.template_label}** ({concept.category})")
            lines.append(f"  {concept.concept_notes}")
        lines.append("")
    return lines


def render_brief_markdown(document: BriefDocument) -> str:
    """
    Render a brief document as Markdown.

    Sections that are excluded or have nothing to show are omitted, in the
    same fixed order the document defines them.

    Args:
        document: Assembled brief

    Returns:
        Markdown text ending in a newline
    """
    lines = _render_cover(document)

    if document.includes(BriefSection.ORGANIZING_PRINCIPLE) and document.organizing_principle:
        lines += _render_principle(document.organizing_principle)

    if document.includes(BriefSection.PAIN_AUDIENCE_MAP) and not document.pain_audience_map.is_empty:
        lines += _render_map(document.pain_audience_map)

    if document.includes(BriefSection.FUNNEL_MAP) and document.funnel_map:
        lines += _render_funnel_map(document.funnel_map)

    if document.includes(BriefSection.AUDIENCES):
        lines += ["## Audiences", ""]
        if not document.audiences:
            lines += ["_No audiences defined._", ""]
        for audience in document.audiences:
            lines.append(f"- **{audience.name}**")
            if audience.description:
                lines.append(f"  {audience.description}")
        if document.audiences:
            lines.append("")

    if document.includes(BriefSection.PAIN_DESIRES):
        if document.pain_points:
            lines += _render_pain_desires("Pain Points", document.pain_points)
        if document.desires:
            lines += _render_pain_desires("Desires", document.desires)

    if document.includes(BriefSection.MESSAGING_ANGLES):
        lines += ["## Messaging Angles", ""]
        if not document.angle_groups:
            lines += ["_No messaging angles yet._", ""]
        for group in document.angle_groups:
            lines += [
                f"### {_kind_badge(group.pain_desire_kind)}{group.pain_desire_title} × {group.audience_name}",
                "",
            ]
            for angle in group.angles:
                tags = [t for t in (angle.tone, "AI" if angle.origin != AngleOrigin.MANUAL else None) if t]
                suffix = f" _({', '.join(tags)})_" if tags else ""
                lines.append(f"- **{angle.title}**{suffix}")
                if angle.description:
                    lines.append(f"  {angle.description}")
            lines.append("")

    if document.includes(BriefSection.HOOKS):
        lines += ["## Hooks", ""]
        if not document.hook_groups:
            lines += ["_No hooks yet._", ""]
        for group in document.hook_groups:
            lines += [f"### {group.angle_title}", ""]
            for hook in group.hooks:
                star = "★ " if hook.starred else ""
                ai = " · AI" if hook.origin == HookOrigin.AI_GENERATED else ""
                lines.append(
                    f"- {star}{hook.content} "
                    f"_[{HOOK_TYPE_LABELS[hook.type]} · {hook.stage_label}{ai}]_"
                )
            lines.append("")

    if document.includes(BriefSection.FORMAT_CONCEPTS) and document.format_concepts:
        lines += _render_concepts(document.format_concepts)

    return "\n".join(lines).rstrip() + "\n"

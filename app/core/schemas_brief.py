"""Pydantic schemas for the exported creative brief."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from app.core.schemas_funnel import (
    AngleOrigin,
    AwarenessStage,
    HookOrigin,
    HookType,
    PainDesireKind,
)

UNKNOWN = "Unknown"
UNKNOWN_ANGLE = "Unknown Angle"


class BriefSection(str, Enum):
    """Optional sections a caller may include in or leave out of a brief."""
    ORGANIZING_PRINCIPLE = "organizing_principle"
    PAIN_AUDIENCE_MAP = "pain_audience_map"
    FUNNEL_MAP = "funnel_map"
    AUDIENCES = "audiences"
    PAIN_DESIRES = "pain_desires"
    MESSAGING_ANGLES = "messaging_angles"
    HOOKS = "hooks"
    FORMAT_CONCEPTS = "format_concepts"


ALL_SECTIONS: tuple[BriefSection, ...] = tuple(BriefSection)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class BriefCover(_Frozen):
    """Cover page: project identity plus headline counts."""

    title: str
    project_name: str
    project_description: str | None = None
    organizing_principle: str | None = None
    generated_at: str
    author: str
    audience_count: int = 0
    pain_count: int = 0
    desire_count: int = 0
    angle_count: int = 0
    hook_count: int = 0
    starred_hook_count: int = 0


class BriefPrinciple(_Frozen):
    principle: str | None = None
    rationale: str | None = None
    approach: PainDesireKind | None = None


class BriefAudience(_Frozen):
    name: str
    description: str | None = None


class BriefPainDesire(_Frozen):
    kind: PainDesireKind
    title: str
    description: str | None = None
    intensity: int | None = None


class BriefMapRow(_Frozen):
    pain_desire_title: str
    kind: PainDesireKind
    linked: tuple[bool, ...] = Field(..., description="One flag per audience column")


class BriefPainAudienceMap(_Frozen):
    audiences: tuple[str, ...] = ()
    rows: tuple[BriefMapRow, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.audiences and self.rows)


class BriefAngle(_Frozen):
    title: str
    description: str | None = None
    tone: str | None = None
    origin: AngleOrigin = AngleOrigin.MANUAL
    pain_desire_title: str = UNKNOWN
    pain_desire_kind: PainDesireKind | None = None
    audience_name: str = UNKNOWN


class BriefAngleGroup(_Frozen):
    """Angles sharing one (pain/desire title, audience name) intersection."""

    pain_desire_title: str
    pain_desire_kind: PainDesireKind | None = None
    audience_name: str
    angles: tuple[BriefAngle, ...] = ()


class BriefHook(_Frozen):
    content: str
    type: HookType
    awareness_stage: AwarenessStage
    stage_label: str
    starred: bool = False
    origin: HookOrigin = HookOrigin.MANUAL
    angle_title: str = UNKNOWN_ANGLE
    pain_desire_title: str = UNKNOWN
    pain_desire_kind: PainDesireKind | None = None
    audience_name: str = UNKNOWN


class BriefHookGroup(_Frozen):
    angle_title: str
    hooks: tuple[BriefHook, ...] = ()


class BriefFunnelAngle(_Frozen):
    angle_title: str
    pain_desire_title: str = UNKNOWN
    pain_desire_kind: PainDesireKind | None = None
    audience_name: str = UNKNOWN
    hooks: tuple[str, ...] = ()


class BriefFunnelStage(_Frozen):
    """Starred hooks of one awareness stage, grouped by angle."""

    stage: AwarenessStage
    label: str
    angles: tuple[BriefFunnelAngle, ...] = ()


class BriefFormatConcept(_Frozen):
    template_id: str | None = None
    template_label: str
    category: str
    concept_notes: str


class BriefConceptGroup(_Frozen):
    """Format concepts written for one hook."""

    hook_id: str
    hook_content: str = ""
    hook_starred: bool = False
    awareness_stage: AwarenessStage | None = None
    stage_label: str = UNKNOWN
    angle_title: str = UNKNOWN_ANGLE
    pain_desire_title: str = UNKNOWN
    pain_desire_kind: PainDesireKind | None = None
    audience_name: str = UNKNOWN
    concepts: tuple[BriefFormatConcept, ...] = ()


class BriefDocument(_Frozen):
    """The whole brief, denormalized and ordered for rendering.

    Sections left out of included_sections are present but empty.
    """

    project_id: str | None = None
    included_sections: tuple[BriefSection, ...] = ALL_SECTIONS
    cover: BriefCover
    organizing_principle: BriefPrinciple | None = None
    pain_audience_map: BriefPainAudienceMap = BriefPainAudienceMap()
    funnel_map: tuple[BriefFunnelStage, ...] = ()
    audiences: tuple[BriefAudience, ...] = ()
    pain_points: tuple[BriefPainDesire, ...] = ()
    desires: tuple[BriefPainDesire, ...] = ()
    angle_groups: tuple[BriefAngleGroup, ...] = ()
    hook_groups: tuple[BriefHookGroup, ...] = ()
    format_concepts: tuple[BriefConceptGroup, ...] = ()

    def includes(self, section: BriefSection) -> bool:
        return section in self.included_sections

    @property
    def format_concept_count(self) -> int:
        return sum(len(group.concepts) for group in self.format_concepts)

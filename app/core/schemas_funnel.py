"""Pydantic schemas for the creative funnel entities."""

from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field

# ============================================================================
# Enums
# ============================================================================


class EntityKind(str, Enum):
    """Funnel collection; values are the backing table names."""
    AUDIENCE = "audiences"
    PAIN_DESIRE = "pain_desires"
    LINK = "pain_desire_audiences"
    ANGLE = "messaging_angles"
    HOOK = "hooks"
    FORMAT_EXECUTION = "format_executions"


class PainDesireKind(str, Enum):
    """Whether a pain/desire row is a pain point or a desire."""
    PAIN = "pain"
    DESIRE = "desire"


class HookType(str, Enum):
    """Rhetorical device a hook opens with."""
    QUESTION = "question"
    STATISTIC = "statistic"
    STORY = "story"
    CONTRADICTION = "contradiction"
    CHALLENGE = "challenge"
    METAPHOR = "metaphor"


class AwarenessStage(str, Enum):
    """Buyer-readiness level (Schwartz's five stages), in funnel order."""
    UNAWARE = "unaware"
    PROBLEM_AWARE = "problem_aware"
    SOLUTION_AWARE = "solution_aware"
    PRODUCT_AWARE = "product_aware"
    MOST_AWARE = "most_aware"


STAGE_ORDER: tuple[AwarenessStage, ...] = tuple(AwarenessStage)


class AngleOrigin(str, Enum):
    """Provenance of a messaging angle."""
    MANUAL = "manual"
    AI_GENERATED = "ai_generated"
    AI_EDITED = "ai_edited"


class HookOrigin(str, Enum):
    """Provenance of a hook."""
    MANUAL = "manual"
    AI_GENERATED = "ai_generated"


class LensKey(str, Enum):
    """The ten strategic lenses that can be filled in on an angle."""
    DESIRED_OUTCOME = "desired_outcome"
    OBJECTIONS = "objections"
    FEATURES_BENEFITS = "features_benefits"
    USE_CASE = "use_case"
    CONSEQUENCES = "consequences"
    MISCONCEPTIONS = "misconceptions"
    EDUCATION = "education"
    ACCEPTANCE = "acceptance"
    FAILED_SOLUTIONS = "failed_solutions"
    IDENTITY = "identity"


LENS_LABELS: dict[LensKey, str] = {
    LensKey.DESIRED_OUTCOME: "Desired Outcome",
    LensKey.OBJECTIONS: "Objections",
    LensKey.FEATURES_BENEFITS: "Features & Benefits",
    LensKey.USE_CASE: "Use Case",
    LensKey.CONSEQUENCES: "Consequences",
    LensKey.MISCONCEPTIONS: "Misconceptions",
    LensKey.EDUCATION: "Education",
    LensKey.ACCEPTANCE: "Acceptance",
    LensKey.FAILED_SOLUTIONS: "Failed Solutions",
    LensKey.IDENTITY: "Identity",
}

HOOK_TYPE_LABELS: dict[HookType, str] = {t: t.value.capitalize() for t in HookType}


def clean_lenses(lenses: Any) -> dict[LensKey, str]:
    """Keep known lens keys with non-blank text, stripped. Anything but a dict is empty."""
    cleaned: dict[LensKey, str] = {}
    if not isinstance(lenses, dict):
        return cleaned
    for key, value in lenses.items():
        try:
            lens = LensKey(key)
        except ValueError:
            continue
        if isinstance(value, str) and value.strip():
            cleaned[lens] = value.strip()
    return cleaned


# ============================================================================
# Entities
# ============================================================================


class FunnelEntity(BaseModel):
    """Common shape of every funnel row held in the graph.

    Entities are frozen: the graph replaces them on patch, so a reference
    taken before a mutation is a valid rollback snapshot.
    """

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    entity_kind: ClassVar[EntityKind]
    # Model field -> row columns, where they differ
    field_columns: ClassVar[dict[str, tuple[str, ...]]] = {}
    # Fields a caller may change through an update operation
    editable_fields: ClassVar[frozenset[str]] = frozenset()

    id: str
    sort_order: int | None = Field(None, ge=0, description="Position within the ordering scope")
    created_at: str | None = None
    updated_at: str | None = None

    def scope_key(self) -> tuple[Any, ...]:
        """Ordering scope this entity's sort_order is unique within."""
        return ()

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "FunnelEntity":
        return cls.model_validate(row)

    def to_row(self) -> dict[str, Any]:
        """Full row representation (column names, JSON-safe values)."""
        return self.model_dump(mode="json", exclude_none=False)

    def insert_row(self) -> dict[str, Any]:
        """Row for an insert request; the server assigns id and timestamps."""
        row = self.to_row()
        for column in ("id", "created_at", "updated_at"):
            row.pop(column, None)
        return row

    @classmethod
    def columns_for(cls, field: str) -> tuple[str, ...]:
        return cls.field_columns.get(field, (field,))

    def row_patch(self, fields: list[str] | set[str]) -> dict[str, Any]:
        """Row columns carrying the given model fields, for an update request."""
        row = self.to_row()
        patch: dict[str, Any] = {}
        for field in fields:
            for column in self.columns_for(field):
                patch[column] = row[column]
        return patch


class Audience(FunnelEntity):
    entity_kind: ClassVar[EntityKind] = EntityKind.AUDIENCE
    editable_fields: ClassVar[frozenset[str]] = frozenset({"name", "description"})

    project_id: str | None = None
    name: str = Field(..., min_length=1, description="Audience segment name")
    description: str | None = None


class PainDesire(FunnelEntity):
    entity_kind: ClassVar[EntityKind] = EntityKind.PAIN_DESIRE
    field_columns: ClassVar[dict[str, tuple[str, ...]]] = {"kind": ("type",)}
    editable_fields: ClassVar[frozenset[str]] = frozenset(
        {"kind", "title", "description", "intensity"}
    )

    project_id: str | None = None
    kind: PainDesireKind
    title: str = Field(..., min_length=1)
    description: str | None = None
    intensity: int | None = Field(None, ge=1, le=10, description="1=mild, 10=acute")

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "PainDesire":
        data = dict(row)
        if "type" in data:
            data["kind"] = data.pop("type")
        return cls.model_validate(data)

    def to_row(self) -> dict[str, Any]:
        row = super().to_row()
        row["type"] = row.pop("kind")
        return row


class PainDesireAudienceLink(FunnelEntity):
    entity_kind: ClassVar[EntityKind] = EntityKind.LINK

    pain_desire_id: str
    audience_id: str
    relevance_score: float | None = None

    @property
    def pair(self) -> tuple[str, str]:
        return (self.pain_desire_id, self.audience_id)

    def to_row(self) -> dict[str, Any]:
        row = super().to_row()
        # Join table has no updated_at column
        row.pop("updated_at", None)
        return row


class MessagingAngle(FunnelEntity):
    entity_kind: ClassVar[EntityKind] = EntityKind.ANGLE
    field_columns: ClassVar[dict[str, tuple[str, ...]]] = {
        "origin": ("is_ai_generated", "is_edited"),
    }
    editable_fields: ClassVar[frozenset[str]] = frozenset(
        {"title", "description", "tone", "lenses", "pain_desire_id", "audience_id"}
    )

    project_id: str | None = None
    pain_desire_id: str | None = None
    audience_id: str | None = None
    title: str = Field(..., min_length=1)
    description: str | None = None
    tone: str | None = None
    origin: AngleOrigin = AngleOrigin.MANUAL
    lenses: dict[LensKey, str] = Field(default_factory=dict)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "MessagingAngle":
        data = dict(row)
        is_ai = bool(data.pop("is_ai_generated", False))
        is_edited = bool(data.pop("is_edited", False))
        if is_ai and is_edited:
            data["origin"] = AngleOrigin.AI_EDITED
        elif is_ai:
            data["origin"] = AngleOrigin.AI_GENERATED
        else:
            data["origin"] = AngleOrigin.MANUAL
        data["lenses"] = clean_lenses(data.get("lenses"))
        return cls.model_validate(data)

    def to_row(self) -> dict[str, Any]:
        row = super().to_row()
        origin = row.pop("origin")
        row["is_ai_generated"] = origin != AngleOrigin.MANUAL.value
        row["is_edited"] = origin == AngleOrigin.AI_EDITED.value
        return row


class Hook(FunnelEntity):
    entity_kind: ClassVar[EntityKind] = EntityKind.HOOK
    field_columns: ClassVar[dict[str, tuple[str, ...]]] = {
        "starred": ("is_starred",),
        "origin": ("is_ai_generated",),
    }
    editable_fields: ClassVar[frozenset[str]] = frozenset({"content", "type"})

    messaging_angle_id: str
    type: HookType = HookType.QUESTION
    content: str = Field(..., min_length=1)
    awareness_stage: AwarenessStage = AwarenessStage.UNAWARE
    starred: bool = False
    origin: HookOrigin = HookOrigin.MANUAL

    def scope_key(self) -> tuple[Any, ...]:
        return (self.awareness_stage,)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Hook":
        data = dict(row)
        data["starred"] = bool(data.pop("is_starred", False))
        data["origin"] = (
            HookOrigin.AI_GENERATED if data.pop("is_ai_generated", False) else HookOrigin.MANUAL
        )
        if not data.get("awareness_stage"):
            data["awareness_stage"] = AwarenessStage.UNAWARE
        if not data.get("type"):
            data["type"] = HookType.QUESTION
        return cls.model_validate(data)

    def to_row(self) -> dict[str, Any]:
        row = super().to_row()
        row["is_starred"] = row.pop("starred")
        row["is_ai_generated"] = row.pop("origin") == HookOrigin.AI_GENERATED.value
        return row


class FormatExecution(FunnelEntity):
    entity_kind: ClassVar[EntityKind] = EntityKind.FORMAT_EXECUTION
    editable_fields: ClassVar[frozenset[str]] = frozenset({"template_id", "concept_notes"})

    hook_id: str
    template_id: str | None = None
    concept_notes: str | None = None

    def scope_key(self) -> tuple[Any, ...]:
        return (self.hook_id,)


ENTITY_MODELS: dict[EntityKind, type[FunnelEntity]] = {
    EntityKind.AUDIENCE: Audience,
    EntityKind.PAIN_DESIRE: PainDesire,
    EntityKind.LINK: PainDesireAudienceLink,
    EntityKind.ANGLE: MessagingAngle,
    EntityKind.HOOK: Hook,
    EntityKind.FORMAT_EXECUTION: FormatExecution,
}


# ============================================================================
# Project and snapshot
# ============================================================================


class ProjectInfo(BaseModel):
    """Project fields the funnel reads (cover page, suggestion context).

    The organizing approach lives inside the row's metadata JSON; the other
    metadata keys are carried along untouched so a write does not drop them.
    """

    model_config = ConfigDict(frozen=True)

    editable_fields: ClassVar[frozenset[str]] = frozenset(
        {"name", "description", "organizing_principle", "principle_rationale", "organizing_approach"}
    )

    id: str
    name: str = ""
    description: str | None = None
    organizing_principle: str | None = None
    principle_rationale: str | None = None
    organizing_approach: PainDesireKind | None = None
    current_step: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict, exclude=True)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ProjectInfo":
        metadata = row.get("metadata")
        metadata = metadata if isinstance(metadata, dict) else {}
        approach = metadata.get("organizing_approach")
        return cls(
            id=str(row["id"]),
            name=row.get("name") or "",
            description=row.get("description"),
            organizing_principle=row.get("organizing_principle"),
            principle_rationale=row.get("principle_rationale"),
            organizing_approach=approach if approach in ("pain", "desire") else None,
            current_step=metadata.get("current_step") or 0,
            metadata=metadata,
        )

    def row_patch(self, fields: list[str] | set[str]) -> dict[str, Any]:
        """Columns to send for the given fields; the approach rewrites metadata."""
        patch: dict[str, Any] = {}
        for name in fields:
            if name == "organizing_approach":
                approach = self.organizing_approach.value if self.organizing_approach else None
                patch["metadata"] = {**self.metadata, "organizing_approach": approach}
            else:
                patch[name] = getattr(self, name)
        return patch


class GraphSnapshot(BaseModel):
    """Immutable point-in-time copy of a funnel graph.

    Collections are sorted deterministically, so two graphs holding the same
    entities produce equal snapshots regardless of insertion history.
    """

    model_config = ConfigDict(frozen=True)

    project_id: str | None = None
    project: ProjectInfo | None = None
    audiences: tuple[Audience, ...] = ()
    pain_desires: tuple[PainDesire, ...] = ()
    links: tuple[PainDesireAudienceLink, ...] = ()
    angles: tuple[MessagingAngle, ...] = ()
    hooks: tuple[Hook, ...] = ()
    format_executions: tuple[FormatExecution, ...] = ()

    def collection(self, kind: EntityKind) -> tuple[FunnelEntity, ...]:
        return {
            EntityKind.AUDIENCE: self.audiences,
            EntityKind.PAIN_DESIRE: self.pain_desires,
            EntityKind.LINK: self.links,
            EntityKind.ANGLE: self.angles,
            EntityKind.HOOK: self.hooks,
            EntityKind.FORMAT_EXECUTION: self.format_executions,
        }[kind]

    def find(self, entity_id: str) -> FunnelEntity | None:
        for kind in EntityKind:
            for entity in self.collection(kind):
                if entity.id == entity_id:
                    return entity
        return None

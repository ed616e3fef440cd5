"""Pydantic schemas for AI suggestion candidates."""

from pydantic import AliasChoices, BaseModel, Field

from app.core.schemas_funnel import AwarenessStage, HookType, PainDesireKind


class ApproachRecommendation(BaseModel):
    """Whether the funnel should lead with pains or with desires."""

    recommendation: PainDesireKind = Field(..., description="Recommended organizing approach")
    confidence: float = Field(default=0.6, ge=0.0, le=1.0)
    rationale: str = Field(default="", description="Why this approach fits")
    product_category: str | None = Field(None, description="Inferred product category")
    key_factors: list[str] = Field(default_factory=list)


class PainDesireSuggestion(BaseModel):
    kind: PainDesireKind
    title: str = Field(..., min_length=1)
    description: str | None = None
    intensity: int | None = Field(None, ge=1, le=10)


class AudienceSuggestion(BaseModel):
    name: str = Field(..., min_length=1)
    description: str | None = None


class FoundationSuggestions(BaseModel):
    """Pains, desires and audiences proposed for a product."""

    pains: list[PainDesireSuggestion] = Field(default_factory=list)
    desires: list[PainDesireSuggestion] = Field(default_factory=list)
    audiences: list[AudienceSuggestion] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.pains or self.desires or self.audiences)


class AngleSuggestion(BaseModel):
    title: str = Field(..., min_length=1)
    description: str | None = None
    tone: str | None = None


class HookSuggestion(BaseModel):
    content: str = Field(..., min_length=1)
    type: HookType = HookType.QUESTION


class StageRecommendation(BaseModel):
    stage: AwarenessStage
    reason: str | None = None


class FormatRecommendation(BaseModel):
    format_id: str
    rank: int = Field(..., ge=1)
    rationale: str | None = None


class FormatSuggestion(BaseModel):
    """A format template to execute a hook in; takes recommendation output as-is."""

    template_id: str = Field(..., validation_alias=AliasChoices("template_id", "format_id"))
    concept_notes: str | None = None

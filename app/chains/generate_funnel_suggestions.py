"""AI suggestions for each funnel step.

Suggestions are best-effort. Any failure yields an empty result: a missing API
key, a transport error, or a response that is not the JSON we asked for. A
candidate that does not validate is dropped on its own. Callers never need a
try/except around these methods.
"""

import json
import re
import time
from typing import Any

from anthropic import AsyncAnthropic
from pydantic import ValidationError

from app.chains.funnel_prompts import (
    ANGLES_SYSTEM,
    APPROACH_SYSTEM,
    CONCEPT_SYSTEM,
    FORMATS_SYSTEM,
    FOUNDATION_SYSTEM,
    HOOKS_SYSTEM,
    LENS_QUESTIONS,
    LENS_SYSTEM,
    STAGE_SYSTEM,
)
from app.core.config import Settings, get_settings
from app.core.format_templates import TEMPLATES_BY_ID, get_template
from app.core.hook_board import STAGE_DEFINITIONS
from app.core.logging import get_logger
from app.core.schemas_funnel import (
    LENS_LABELS,
    Audience,
    AwarenessStage,
    Hook,
    HookType,
    LensKey,
    MessagingAngle,
    PainDesire,
    PainDesireKind,
)
from app.core.schemas_suggestions import (
    AngleSuggestion,
    ApproachRecommendation,
    AudienceSuggestion,
    FormatRecommendation,
    FoundationSuggestions,
    HookSuggestion,
    PainDesireSuggestion,
    StageRecommendation,
)

logger = get_logger(__name__)


def parse_json_response(text: str, context: str = "") -> dict[str, Any]:
    """Parse a JSON object out of a model response, tolerating code fences."""
    try:
        if "```json" in text:
            text = text.split("```json")[1].split("```")[0]
        elif "```" in text:
            text = text.split("```")[1].split("```")[0]
        parsed = json.loads(text.strip())
        if isinstance(parsed, dict):
            return parsed
    except (json.JSONDecodeError, IndexError):
        pass

    match = re.search(r"\{[\s\S]*\}", text)
    if match:
        try:
            parsed = json.loads(match.group())
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

    logger.warning(f"Failed to parse JSON from suggestion response ({context})")
    return {}


def _valid_items(items: Any, model: type, context: str, **defaults: Any) -> list[Any]:
    """Validate a list of candidate dicts, dropping the ones that do not fit."""
    if not isinstance(items, list):
        return []
    valid = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            valid.append(model.model_validate({**defaults, **item}))
        except ValidationError:
            logger.debug(f"Dropped malformed {context} candidate: {item}")
    return valid


def _context_lines(
    product: str | None = None,
    pain_desire: PainDesire | None = None,
    audience: Audience | None = None,
    angle: MessagingAngle | None = None,
) -> list[str]:
    lines = []
    if product:
        lines.append(f"PRODUCT: {product}")
    if pain_desire:
        label = "PAIN POINT" if pain_desire.kind == PainDesireKind.PAIN else "DESIRE"
        detail = f" ({pain_desire.description})" if pain_desire.description else ""
        lines.append(f"{label}: {pain_desire.title}{detail}")
    if audience:
        detail = f" ({audience.description})" if audience.description else ""
        lines.append(f"TARGET AUDIENCE: {audience.name}{detail}")
    if angle:
        lines.append(f'MESSAGING ANGLE: "{angle.title}"')
        if angle.description:
            lines.append(f"ANGLE DESCRIPTION: {angle.description}")
        if angle.tone:
            lines.append(f"TONE: {angle.tone}")
        if angle.lenses:
            lines.append("STRATEGIC LENS INSIGHTS:")
            lines += [f"- {LENS_LABELS[key]}: {text}" for key, text in angle.lenses.items()]
    return lines


def _stage_label(stage: AwarenessStage) -> str:
    definition = STAGE_DEFINITIONS[stage]
    return f"{definition.label}: {definition.description}"


class SuggestionGenerator:
    """Anthropic-backed suggestion calls for the five funnel steps."""

    def __init__(self, client: AsyncAnthropic | None = None, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self._client = client

    @property
    def client(self) -> AsyncAnthropic | None:
        if self._client is None and self.settings.ANTHROPIC_API_KEY:
            self._client = AsyncAnthropic(api_key=self.settings.ANTHROPIC_API_KEY)
        return self._client

    async def _complete_json(
        self, chain: str, system: str, user_message: str, max_tokens: int | None = None
    ) -> dict[str, Any]:
        client = self.client
        if client is None:
            logger.info(f"Skipping {chain}: no ANTHROPIC_API_KEY configured")
            return {}

        start = time.time()
        try:
            response = await client.messages.create(
                model=self.settings.SUGGESTIONS_MODEL,
                max_tokens=max_tokens or self.settings.SUGGESTIONS_MAX_TOKENS,
                temperature=self.settings.SUGGESTIONS_TEMPERATURE,
                system=system,
                messages=[{"role": "user", "content": user_message}],
            )
        except Exception as e:
            logger.warning(f"Suggestion call {chain} failed: {e}")
            return {}
        duration_ms = int((time.time() - start) * 1000)

        usage = getattr(response, "usage", None)
        logger.info(
            f"Suggestion call {chain} completed",
            extra={
                "chain": chain,
                "duration_ms": duration_ms,
                "tokens_input": getattr(usage, "input_tokens", None),
                "tokens_output": getattr(usage, "output_tokens", None),
            },
        )

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        if not text.strip():
            logger.warning(f"Suggestion call {chain} returned no text")
            return {}
        return parse_json_response(text, chain)

    # ------------------------------------------------------------------
    # Step 1: organizing approach
    # ------------------------------------------------------------------

    async def recommend_approach(self, product_description: str) -> ApproachRecommendation | None:
        """Recommend pain-first or desire-first messaging; None when unavailable."""
        if not product_description.strip():
            return None
        data = await self._complete_json(
            "recommend_approach",
            APPROACH_SYSTEM,
            f"Product/Service Description:\n\n{product_description}",
            max_tokens=512,
        )
        if not data:
            return None
        try:
            return ApproachRecommendation.model_validate(data)
        except ValidationError:
            logger.warning("Dropped malformed approach recommendation")
            return None

    # ------------------------------------------------------------------
    # Step 2: pains, desires, audiences
    # ------------------------------------------------------------------

    async def suggest_foundation(
        self, product_description: str, approach: PainDesireKind | None = None
    ) -> FoundationSuggestions:
        """
        Propose pain points, desires and audiences for a product.

        Args:
            product_description: What the product does and for whom
            approach: Pain-first or desire-first; weights the proposals

        Returns:
            Suggestions (empty on any failure)
        """
        if not product_description.strip():
            return FoundationSuggestions()
        user_message = "\n".join(
            [
                f"Product/Service Description:\n{product_description}",
                "",
                f"Messaging approach: {(approach or PainDesireKind.PAIN).value}-first",
            ]
        )
        data = await self._complete_json("suggest_foundation", FOUNDATION_SYSTEM, user_message)
        return FoundationSuggestions(
            pains=_valid_items(data.get("pains"), PainDesireSuggestion, "pain", kind=PainDesireKind.PAIN),
            desires=_valid_items(
                data.get("desires"), PainDesireSuggestion, "desire", kind=PainDesireKind.DESIRE
            ),
            audiences=_valid_items(data.get("audiences"), AudienceSuggestion, "audience"),
        )

    # ------------------------------------------------------------------
    # Step 3: angles and lenses
    # ------------------------------------------------------------------

    async def suggest_angles(
        self,
        product_description: str | None,
        pain_desire: PainDesire,
        audience: Audience,
        existing: list[MessagingAngle] | None = None,
    ) -> list[AngleSuggestion]:
        lines = _context_lines(product_description, pain_desire, audience)
        if existing:
            lines.append("EXISTING ANGLES (do not repeat):")
            lines += [f"- {angle.title}" for angle in existing]
        lines.append("")
        lines.append("Propose messaging angles for this intersection.")
        data = await self._complete_json(
            "suggest_angles", ANGLES_SYSTEM, "\n".join(lines), max_tokens=768
        )
        return _valid_items(data.get("angles"), AngleSuggestion, "angle")

    async def suggest_lens_candidates(
        self,
        product_description: str | None,
        angle: MessagingAngle,
        lens: LensKey,
        pain_desire: PainDesire | None = None,
        audience: Audience | None = None,
    ) -> list[str]:
        """Candidate texts for one lens of an angle."""
        lens = LensKey(lens)
        lines = _context_lines(product_description, pain_desire, audience, angle)
        lines += ["", f"LENS: {LENS_LABELS[lens]}: {LENS_QUESTIONS[lens.value]}"]
        data = await self._complete_json(
            "suggest_lens_candidates", LENS_SYSTEM, "\n".join(lines), max_tokens=512
        )
        candidates = data.get("candidates")
        if not isinstance(candidates, list):
            return []
        return [c.strip() for c in candidates if isinstance(c, str) and c.strip()]

    # ------------------------------------------------------------------
    # Step 4: hooks and awareness stages
    # ------------------------------------------------------------------

    async def suggest_hooks(
        self,
        product_description: str | None,
        angle: MessagingAngle,
        stage: AwarenessStage = AwarenessStage.UNAWARE,
        tone: str | None = None,
        pain_desire: PainDesire | None = None,
        audience: Audience | None = None,
    ) -> list[HookSuggestion]:
        stage = AwarenessStage(stage)
        lines = _context_lines(product_description, pain_desire, audience, angle)
        lines += [
            "",
            f"AWARENESS STAGE: {_stage_label(stage)}",
            f"STAGE GUIDANCE: {STAGE_DEFINITIONS[stage].guidance}",
        ]
        if tone:
            lines.append(f"BRAND TONE: {tone}")
        data = await self._complete_json("suggest_hooks", HOOKS_SYSTEM, "\n".join(lines))

        items = data.get("hooks")
        if not isinstance(items, list):
            return []
        valid_types = {t.value for t in HookType}
        normalized = [
            {
                **item,
                "type": item["type"]
                if isinstance(item.get("type"), str) and item["type"] in valid_types
                else HookType.QUESTION,
            }
            for item in items
            if isinstance(item, dict)
        ]
        return _valid_items(normalized, HookSuggestion, "hook")

    async def classify_awareness_stage(
        self, hook: Hook, angle: MessagingAngle | None = None
    ) -> StageRecommendation | None:
        lines = [f'HOOK: "{hook.content}"', f"HOOK TYPE: {hook.type.value}"]
        lines += _context_lines(angle=angle)
        data = await self._complete_json(
            "classify_awareness_stage", STAGE_SYSTEM, "\n".join(lines), max_tokens=256
        )
        if not data:
            return None
        try:
            return StageRecommendation.model_validate(data)
        except ValidationError:
            logger.warning(f"Dropped malformed stage classification for hook {hook.id}")
            return None

    # ------------------------------------------------------------------
    # Step 5: formats and concepts
    # ------------------------------------------------------------------

    async def recommend_formats(
        self,
        hook: Hook,
        angle: MessagingAngle | None = None,
        pain_desire: PainDesire | None = None,
        audience: Audience | None = None,
        product_description: str | None = None,
    ) -> list[FormatRecommendation]:
        """Ranked format templates for a hook, restricted to the catalog."""
        lines = _context_lines(product_description, pain_desire, audience, angle)
        lines += [
            "",
            f"AWARENESS STAGE: {_stage_label(hook.awareness_stage)}",
            f"HOOK TYPE: {hook.type.value}",
            f'HOOK CONTENT: "{hook.content}"',
        ]
        data = await self._complete_json("recommend_formats", FORMATS_SYSTEM, "\n".join(lines))
        recommendations = [
            r
            for r in _valid_items(data.get("recommendations"), FormatRecommendation, "format")
            if r.format_id in TEMPLATES_BY_ID
        ]
        return sorted(recommendations, key=lambda r: r.rank)

    async def draft_concept_notes(
        self,
        hook: Hook,
        template_id: str,
        angle: MessagingAngle | None = None,
        pain_desire: PainDesire | None = None,
        audience: Audience | None = None,
        product_description: str | None = None,
    ) -> str | None:
        """Concept outline for executing a hook in a format; None when unavailable."""
        template = get_template(template_id)
        if template is None:
            logger.warning(f"Cannot draft concept for unknown template {template_id}")
            return None

        lines = _context_lines(product_description, pain_desire, audience, angle)
        lines += [
            "",
            f"AWARENESS STAGE: {_stage_label(hook.awareness_stage)}",
            f"HOOK TYPE: {hook.type.value}",
            f'HOOK CONTENT: "{hook.content}"',
            "",
            f'CREATIVE FORMAT: "{template.name}" ({template.category})',
            f"FORMAT DESCRIPTION: {template.description}",
            f"FORMAT STRUCTURE: {template.structure}",
            "",
            "Write the concept outline, opening with the hook.",
        ]
        data = await self._complete_json("draft_concept_notes", CONCEPT_SYSTEM, "\n".join(lines))
        notes = data.get("concept_notes")
        if not isinstance(notes, str) or not notes.strip():
            return None
        return notes.strip()

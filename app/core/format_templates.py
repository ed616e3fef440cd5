"""Catalog of narrative format templates a hook can be executed in.

The catalog is fixed reference data; format executions point at it by id.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class FormatTemplate:
    id: str
    category: str
    name: str
    description: str
    structure: str  # beats separated by " → "


FORMAT_TEMPLATES: tuple[FormatTemplate, ...] = (
    # Storytelling
    FormatTemplate("story-origin", "Storytelling", "Origin Story",
                   "How the product or idea came to be, told around the 'aha' moment",
                   "Setup → Inciting incident → Discovery → Resolution → CTA"),
    FormatTemplate("story-customer-journey", "Storytelling", "Customer Journey",
                   "One customer's path from struggle to success",
                   "Meet [name] → Their struggle → Finding you → The result → CTA"),
    FormatTemplate("story-day-in-life", "Storytelling", "Day in the Life",
                   "Where the product sits in an ordinary day",
                   "Morning without → Discovery moment → Evening with → Contrast → CTA"),
    FormatTemplate("story-unexpected-lesson", "Storytelling", "Unexpected Lesson",
                   "A surprising insight that reframes the problem",
                   "Conventional wisdom → The twist → New understanding → Application → CTA"),
    FormatTemplate("story-open-loop", "Storytelling", "Open Loop Narrative",
                   "Open mid-action to build curiosity, then close the loop",
                   "In medias res → Backstory → Climax → Resolution → CTA"),
    # Before / After
    FormatTemplate("ba-transformation", "Before / After", "Full Transformation",
                   "Vivid contrast between the old life and the new one",
                   "Paint the 'before' → Bridge moment → Paint the 'after' → How to get there → CTA"),
    FormatTemplate("ba-side-by-side", "Before / After", "Side-by-Side Compare",
                   "Two scenarios running in parallel",
                   "Without [product] → With [product] → Key differences → Social proof → CTA"),
    FormatTemplate("ba-time-machine", "Before / After", "Time Machine",
                   "A letter to a past self or a projection into the future",
                   "Dear past me → What I wish I knew → What changed → The result today → CTA"),
    FormatTemplate("ba-metrics-shift", "Before / After", "Metrics Shift",
                   "Hard numbers before and after",
                   "Before metrics → The change → After metrics → Timeline → CTA"),
    FormatTemplate("ba-emotional-state", "Before / After", "Emotional State Change",
                   "The shift in feelings and mindset",
                   "Frustration/fear → Turning point → Relief/confidence → Identity shift → CTA"),
    # Founder Story
    FormatTemplate("founder-struggle", "Founder Story", "The Struggle That Started It",
                   "The personal pain that led to building the solution",
                   "My problem → Failed attempts → The breakthrough → Why I built this → CTA"),
    FormatTemplate("founder-contrarian", "Founder Story", "Contrarian Bet",
                   "Why the founder went against industry norms",
                   "What everyone does → Why I disagreed → The risk I took → The result → CTA"),
    FormatTemplate("founder-behind-scenes", "Founder Story", "Behind the Scenes",
                   "An open look at how decisions get made",
                   "The decision we faced → Our reasoning → What we chose → Why it matters to you → CTA"),
    FormatTemplate("founder-mission", "Founder Story", "Mission Statement",
                   "The values-driven reason the company exists",
                   "What we believe → What we saw wrong → What we're building → Join us → CTA"),
    # Us vs Them
    FormatTemplate("uvt-old-way-new-way", "Us vs Them", "Old Way vs New Way",
                   "Position the approach as the next step up",
                   "The old way (pain) → Why it's broken → The new way → Proof it works → CTA"),
    FormatTemplate("uvt-myth-buster", "Us vs Them", "Myth Buster",
                   "Debunk a common belief and stand as the truth-teller",
                   "Common belief → Why it's wrong → The real truth → Our approach → CTA"),
    FormatTemplate("uvt-category-comparison", "Us vs Them", "Category Comparison",
                   "Compare whole categories rather than competitors",
                   "Category A problems → Category B problems → Our category → Why different → CTA"),
    FormatTemplate("uvt-hidden-cost", "Us vs Them", "Hidden Cost Exposé",
                   "What the alternatives really cost in time, money and stress",
                   "Surface cost → Hidden costs → True total → Our alternative → CTA"),
    # Social Proof
    FormatTemplate("sp-testimonial-stack", "Social Proof", "Testimonial Stack",
                   "Several testimonials layered around one theme",
                   "Bold claim → Proof 1 → Proof 2 → Proof 3 → Your turn → CTA"),
    FormatTemplate("sp-case-study-mini", "Social Proof", "Mini Case Study",
                   "A condensed success story with specific results",
                   "Client situation → Challenge → What we did → Results (numbers) → CTA"),
    FormatTemplate("sp-social-surge", "Social Proof", "Social Surge",
                   "Momentum as proof: everyone is switching",
                   "Trend/movement → Who's joining → Why now → FOMO trigger → CTA"),
    FormatTemplate("sp-results-collage", "Social Proof", "Results Collage",
                   "Rapid-fire results from different customers",
                   "Result 1 → Result 2 → Result 3 → Pattern reveal → CTA"),
)

TEMPLATES_BY_ID: dict[str, FormatTemplate] = {t.id: t for t in FORMAT_TEMPLATES}

UNKNOWN_FORMAT = "Unknown Format"
OTHER_CATEGORY = "Other"


def get_template(template_id: str | None) -> FormatTemplate | None:
    if not template_id:
        return None
    return TEMPLATES_BY_ID.get(template_id)


def template_label(template_id: str | None) -> str:
    """Display name for a template id; unknown ids fall back to the id itself."""
    if not template_id:
        return UNKNOWN_FORMAT
    template = TEMPLATES_BY_ID.get(template_id)
    return template.name if template else template_id


def template_category(template_id: str | None) -> str:
    template = get_template(template_id)
    return template.category if template else OTHER_CATEGORY


def catalog_block() -> str:
    """One line per template, as listed to the suggestion model."""
    return "\n".join(
        f'- {t.id} | {t.category} | "{t.name}": {t.description} | Structure: {t.structure}'
        for t in FORMAT_TEMPLATES
    )

"""Read-only views over pain/desire x audience intersections.

Everything here is recomputed on each call; inputs are small (low hundreds of
links and angles at most).
"""

from pydantic import BaseModel, ConfigDict

from app.core.funnel_graph import FunnelGraph
from app.core.schemas_funnel import (
    Audience,
    GraphSnapshot,
    MessagingAngle,
    PainDesire,
    PainDesireKind,
)


class IntersectionView(BaseModel):
    """One linked (pain/desire, audience) pair and the angles attached to it.

    A missing endpoint is None: the link outlived the entity it points to.
    """

    model_config = ConfigDict(frozen=True)

    link_id: str
    pain_desire_id: str
    audience_id: str
    pain_desire: PainDesire | None = None
    audience: Audience | None = None
    angles: tuple[MessagingAngle, ...] = ()


class MatrixRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    pain_desire: PainDesire
    # One entry per audience column, same order as PainAudienceMatrix.audiences
    linked: tuple[bool, ...]


class PainAudienceMatrix(BaseModel):
    model_config = ConfigDict(frozen=True)

    audiences: tuple[Audience, ...] = ()
    rows: tuple[MatrixRow, ...] = ()


def _as_snapshot(source: FunnelGraph | GraphSnapshot) -> GraphSnapshot:
    return source.snapshot() if isinstance(source, FunnelGraph) else source


def resolve_intersections(source: FunnelGraph | GraphSnapshot) -> list[IntersectionView]:
    """
    Build one view per link, in link order.

    Args:
        source: Live graph or snapshot

    Returns:
        Intersection views; angles within each keep angle sort order
    """
    snapshot = _as_snapshot(source)
    pain_desires = {pd.id: pd for pd in snapshot.pain_desires}
    audiences = {a.id: a for a in snapshot.audiences}

    views = []
    for link in snapshot.links:
        angles = tuple(
            angle
            for angle in snapshot.angles
            if angle.pain_desire_id == link.pain_desire_id
            and angle.audience_id == link.audience_id
        )
        views.append(
            IntersectionView(
                link_id=link.id,
                pain_desire_id=link.pain_desire_id,
                audience_id=link.audience_id,
                pain_desire=pain_desires.get(link.pain_desire_id),
                audience=audiences.get(link.audience_id),
                angles=angles,
            )
        )
    return views


def orphaned_angles(source: FunnelGraph | GraphSnapshot) -> list[MessagingAngle]:
    """Angles whose (pain/desire, audience) pair is not currently linked."""
    snapshot = _as_snapshot(source)
    linked = {link.pair for link in snapshot.links}
    return [
        angle
        for angle in snapshot.angles
        if (angle.pain_desire_id, angle.audience_id) not in linked
    ]


def pain_audience_matrix(source: FunnelGraph | GraphSnapshot) -> PainAudienceMatrix:
    """Pains then desires as rows, audiences as columns, linked flags in cells."""
    snapshot = _as_snapshot(source)
    linked = {link.pair for link in snapshot.links}
    ordered = [pd for pd in snapshot.pain_desires if pd.kind == PainDesireKind.PAIN] + [
        pd for pd in snapshot.pain_desires if pd.kind == PainDesireKind.DESIRE
    ]
    rows = tuple(
        MatrixRow(
            pain_desire=pd,
            linked=tuple((pd.id, audience.id) in linked for audience in snapshot.audiences),
        )
        for pd in ordered
    )
    return PainAudienceMatrix(audiences=snapshot.audiences, rows=rows)

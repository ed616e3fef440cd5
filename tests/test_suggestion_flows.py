"""Tests for suggestion flows that write through the sync engine."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from app.core.schemas_funnel import AwarenessStage, FormatExecution, Hook, LensKey
from app.core.schemas_suggestions import StageRecommendation
from app.core.suggestion_flows import (
    auto_classify_hook,
    draft_and_save_concept,
    fill_empty_lenses,
    recommend_formats_for_hook,
    suggest_angles_for_pair,
    suggest_hooks_for_angle,
)
from app.core.sync_engine import OptimisticSyncEngine, SyncErrorKind
from tests.fakes.fake_store import FakeFunnelStore
from tests.fixtures_funnel import (
    ANGLE_BUSYWORK,
    AUD_FOUNDERS,
    HOOK_MORNINGS,
    PD_NO_TIME,
    PROJECT_ROW,
    build_graph,
    funnel_rows,
)


@pytest.fixture
def store():
    return FakeFunnelStore(rows=funnel_rows())


@pytest.fixture
def engine(store):
    return OptimisticSyncEngine(store, graph=build_graph())


@pytest.fixture
def generator():
    gen = MagicMock()
    gen.suggest_lens_candidates = AsyncMock(return_value=[])
    gen.classify_awareness_stage = AsyncMock(return_value=None)
    gen.draft_concept_notes = AsyncMock(return_value=None)
    gen.suggest_angles = AsyncMock(return_value=[])
    gen.suggest_hooks = AsyncMock(return_value=[])
    gen.recommend_formats = AsyncMock(return_value=[])
    return gen


class TestFillEmptyLenses:
    @pytest.mark.asyncio
    async def test_fills_only_empty_lenses(self, engine, generator):
        await engine.set_angle_lens(ANGLE_BUSYWORK, LensKey.IDENTITY, "Scrappy founder")

        async def candidates(product, angle, lens, **kwargs):
            return [f"{lens.value} insight", "second choice"]

        generator.suggest_lens_candidates.side_effect = candidates

        results = await fill_empty_lenses(engine, generator, ANGLE_BUSYWORK)

        assert LensKey.IDENTITY not in results
        assert len(results) == len(LensKey) - 1
        assert all(result.ok for result in results.values())
        lenses = engine.graph.get(ANGLE_BUSYWORK).lenses
        assert lenses[LensKey.IDENTITY] == "Scrappy founder"
        assert lenses[LensKey.OBJECTIONS] == "objections insight"

    @pytest.mark.asyncio
    async def test_lens_without_candidates_skipped(self, engine, generator):
        async def candidates(product, angle, lens, **kwargs):
            return ["Only this one"] if lens == LensKey.OBJECTIONS else []

        generator.suggest_lens_candidates.side_effect = candidates

        results = await fill_empty_lenses(engine, generator, ANGLE_BUSYWORK)

        assert list(results) == [LensKey.OBJECTIONS]

    @pytest.mark.asyncio
    async def test_failed_save_does_not_stop_others(self, engine, store, generator):
        generator.suggest_lens_candidates.return_value = ["Insight"]
        store.fail("update_row")

        results = await fill_empty_lenses(engine, generator, ANGLE_BUSYWORK)

        assert len(results) == len(LensKey)
        assert all(result.error_kind == SyncErrorKind.REMOTE for result in results.values())
        assert engine.graph.get(ANGLE_BUSYWORK).lenses == {}

    @pytest.mark.asyncio
    async def test_unknown_angle(self, engine, generator):
        assert await fill_empty_lenses(engine, generator, "missing") == {}
        generator.suggest_lens_candidates.assert_not_called()


class TestAutoClassifyHook:
    @pytest.mark.asyncio
    async def test_moves_to_end_of_recommended_column(self, engine, store, generator):
        engine.graph.insert(
            Hook(id="h-early", messaging_angle_id=ANGLE_BUSYWORK, content="Inbox at 6am?")
        )
        generator.classify_awareness_stage.return_value = StageRecommendation(
            stage=AwarenessStage.UNAWARE
        )

        result = await auto_classify_hook(engine, generator, HOOK_MORNINGS)

        assert result.ok
        hook = engine.graph.get(HOOK_MORNINGS)
        assert hook.awareness_stage == AwarenessStage.UNAWARE
        assert hook.sort_order == 1

    @pytest.mark.asyncio
    async def test_same_stage_is_noop(self, engine, store, generator):
        generator.classify_awareness_stage.return_value = StageRecommendation(
            stage=AwarenessStage.PRODUCT_AWARE
        )

        result = await auto_classify_hook(engine, generator, HOOK_MORNINGS)

        assert result.ok
        assert store.writes() == []

    @pytest.mark.asyncio
    async def test_no_recommendation(self, engine, store, generator):
        assert await auto_classify_hook(engine, generator, HOOK_MORNINGS) is None
        assert store.writes() == []

    @pytest.mark.asyncio
    async def test_unknown_hook(self, engine, generator):
        result = await auto_classify_hook(engine, generator, "missing")

        assert result.error_kind == SyncErrorKind.NOT_FOUND
        generator.classify_awareness_stage.assert_not_called()


class TestDraftAndSaveConcept:
    @pytest.mark.asyncio
    async def test_saves_draft(self, engine, generator):
        created = await engine.create_format_execution(HOOK_MORNINGS, "ba-transformation")
        generator.draft_concept_notes.return_value = "BEFORE: chaos\nAFTER: calm"

        result = await draft_and_save_concept(engine, generator, created.entity.id)

        assert result.ok
        assert engine.graph.get(created.entity.id).concept_notes == "BEFORE: chaos\nAFTER: calm"
        kwargs = generator.draft_concept_notes.call_args.kwargs
        assert kwargs["angle"].id == ANGLE_BUSYWORK
        assert kwargs["audience"].name == "Founders"

    @pytest.mark.asyncio
    async def test_requires_template(self, engine, generator):
        engine.graph.insert(FormatExecution(id="fe-blank", hook_id=HOOK_MORNINGS))

        result = await draft_and_save_concept(engine, generator, "fe-blank")

        assert result.error_kind == SyncErrorKind.PRECONDITION
        generator.draft_concept_notes.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_draft(self, engine, store, generator):
        created = await engine.create_format_execution(HOOK_MORNINGS, "story-open-loop")

        assert await draft_and_save_concept(engine, generator, created.entity.id) is None
        assert store.writes() == [("insert_row", "format_executions")]


class TestStepSuggestions:
    @pytest.mark.asyncio
    async def test_angles_get_intersection_context(self, engine, generator):
        await suggest_angles_for_pair(engine, generator, PD_NO_TIME, AUD_FOUNDERS)

        call = generator.suggest_angles.call_args
        assert call.args[0] == PROJECT_ROW["description"]
        assert (call.args[1].id, call.args[2].id) == (PD_NO_TIME, AUD_FOUNDERS)
        assert [a.id for a in call.kwargs["existing"]] == [ANGLE_BUSYWORK]

    @pytest.mark.asyncio
    async def test_angles_for_unknown_pair(self, engine, generator):
        assert await suggest_angles_for_pair(engine, generator, PD_NO_TIME, "missing") == []
        generator.suggest_angles.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_hooks_get_angle_context(self, engine, generator):
        await suggest_hooks_for_angle(
            engine, generator, ANGLE_BUSYWORK, AwarenessStage.SOLUTION_AWARE, tone="wry"
        )

        call = generator.suggest_hooks.call_args
        assert call.args[1].id == ANGLE_BUSYWORK
        assert call.args[2] == AwarenessStage.SOLUTION_AWARE
        assert call.kwargs["tone"] == "wry"
        assert call.kwargs["audience"].id == AUD_FOUNDERS

    @pytest.mark.asyncio
    async def test_formats_for_hook_with_missing_angle(self, engine, generator):
        engine.graph.remove(ANGLE_BUSYWORK)

        await recommend_formats_for_hook(engine, generator, HOOK_MORNINGS)

        call = generator.recommend_formats.call_args
        assert call.args[0].id == HOOK_MORNINGS
        assert call.kwargs["angle"] is None
        assert call.kwargs["pain_desire"] is None

    @pytest.mark.asyncio
    async def test_formats_for_unknown_hook(self, engine, generator):
        assert await recommend_formats_for_hook(engine, generator, "missing") == []

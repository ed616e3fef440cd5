"""Tests for the in-memory funnel graph."""

import pytest

from app.core.funnel_graph import FunnelGraph
from app.core.schemas_funnel import (
    Audience,
    AwarenessStage,
    EntityKind,
    Hook,
    PainDesireAudienceLink,
    PainDesireKind,
)
from tests.fixtures_funnel import (
    ANGLE_BUSYWORK,
    AUD_FOUNDERS,
    AUD_PARENTS,
    HOOK_MORNINGS,
    LINK_FOUNDERS_NO_TIME,
    LINK_PARENTS_NO_TIME,
    PD_NO_TIME,
    PROJECT_ID,
    build_graph,
    funnel_rows,
    project_row,
)


class TestHydration:
    def test_from_rows_loads_all_collections(self):
        graph = build_graph()

        assert graph.project_id == PROJECT_ID
        assert graph.project.name == "Morning Routine App"
        assert [a.id for a in graph.audiences()] == [AUD_FOUNDERS]
        assert [pd.id for pd in graph.pain_desires()] == [PD_NO_TIME]
        assert [link.id for link in graph.links()] == [LINK_FOUNDERS_NO_TIME]
        assert [a.id for a in graph.angles()] == [ANGLE_BUSYWORK]
        assert [h.id for h in graph.hooks()] == [HOOK_MORNINGS]
        assert len(graph) == 5

    def test_from_rows_filters_foreign_children(self):
        rows = funnel_rows()
        rows["pain_desire_audiences"].append(
            {"id": "link-x", "pain_desire_id": PD_NO_TIME, "audience_id": "other-project-aud", "sort_order": 1}
        )
        rows["hooks"].append(
            {"id": "hook-x", "messaging_angle_id": "other-angle", "content": "Elsewhere", "sort_order": 1}
        )
        rows["format_executions"].append({"id": "fe-x", "hook_id": "hook-x", "sort_order": 0})

        graph = FunnelGraph.from_rows(PROJECT_ID, project_row(), rows)

        assert "link-x" not in graph
        assert "hook-x" not in graph
        assert "fe-x" not in graph

    def test_from_rows_skips_duplicate_pair(self):
        rows = funnel_rows()
        rows["pain_desire_audiences"].append(
            {"id": "dup", "pain_desire_id": PD_NO_TIME, "audience_id": AUD_FOUNDERS, "sort_order": 1}
        )

        graph = FunnelGraph.from_rows(PROJECT_ID, project_row(), rows)

        assert [link.id for link in graph.links()] == [LINK_FOUNDERS_NO_TIME]

    def test_snapshot_round_trip(self):
        graph = build_graph(extended=True)

        snapshot = graph.snapshot()
        assert FunnelGraph.from_snapshot(snapshot).snapshot() == snapshot


class TestOrdering:
    def test_appends_get_dense_sort_orders(self):
        graph = FunnelGraph(project_id=PROJECT_ID)
        for name in ("A", "B", "C"):
            graph.insert(Audience(id=f"aud-{name}", name=name))

        orders = [a.sort_order for a in graph.audiences()]
        assert orders == [0, 1, 2]
        assert len(set(orders)) == 3

    def test_hook_scope_is_stage(self):
        graph = build_graph()
        graph.insert(Hook(id="h-unaware", messaging_angle_id=ANGLE_BUSYWORK, content="One"))
        graph.insert(
            Hook(
                id="h-product",
                messaging_angle_id=ANGLE_BUSYWORK,
                content="Two",
                awareness_stage=AwarenessStage.PRODUCT_AWARE,
            )
        )

        assert graph.get("h-unaware").sort_order == 0
        assert graph.get("h-product").sort_order == 1

    def test_hooks_sorted_by_stage_then_order(self):
        graph = build_graph()
        graph.insert(Hook(id="h-unaware", messaging_angle_id=ANGLE_BUSYWORK, content="One"))

        assert [h.id for h in graph.hooks()] == ["h-unaware", HOOK_MORNINGS]
        assert [h.id for h in graph.hooks(AwarenessStage.PRODUCT_AWARE)] == [HOOK_MORNINGS]

    def test_equal_sort_orders_break_ties_by_id(self):
        graph = FunnelGraph()
        graph.insert(Audience(id="b", name="B", sort_order=0))
        graph.insert(Audience(id="a", name="A", sort_order=0))

        assert [a.id for a in graph.audiences()] == ["a", "b"]

    def test_remove_does_not_renumber(self):
        graph = FunnelGraph()
        for name in ("A", "B", "C"):
            graph.insert(Audience(id=name, name=name))

        graph.remove("A")

        assert [a.sort_order for a in graph.audiences()] == [1, 2]


class TestMutators:
    def test_insert_rejects_duplicate_id(self):
        graph = build_graph()

        with pytest.raises(ValueError):
            graph.insert(Audience(id=AUD_FOUNDERS, name="Again"))

    def test_insert_rejects_duplicate_pair(self):
        graph = build_graph()

        with pytest.raises(ValueError):
            graph.insert(
                PainDesireAudienceLink(id="new", pain_desire_id=PD_NO_TIME, audience_id=AUD_FOUNDERS)
            )

    def test_patch_unknown_id_is_noop(self):
        graph = build_graph()
        before = graph.snapshot()

        assert graph.patch("missing", {"name": "x"}) is None
        assert graph.snapshot() == before

    def test_patch_replaces_entity(self):
        graph = build_graph()
        original = graph.get(AUD_FOUNDERS)

        updated = graph.patch(AUD_FOUNDERS, {"name": "Solo founders"})

        assert updated.name == "Solo founders"
        assert original.name == "Founders"
        assert graph.get(AUD_FOUNDERS) is updated

    def test_remove_audience_cascades_links(self):
        graph = build_graph(extended=True)

        removed = graph.remove(AUD_PARENTS)

        assert [e.id for e in removed] == [AUD_PARENTS, LINK_PARENTS_NO_TIME]
        assert all(link.audience_id != AUD_PARENTS for link in graph.links())
        assert graph.get(ANGLE_BUSYWORK) is not None

    def test_remove_pain_desire_keeps_angles(self):
        graph = build_graph(extended=True)

        graph.remove(PD_NO_TIME)

        assert graph.links() == []
        assert graph.get(ANGLE_BUSYWORK).pain_desire_id == PD_NO_TIME

    def test_restore_puts_back_cascade(self):
        graph = build_graph(extended=True)
        before = graph.snapshot()

        graph.restore(graph.remove(PD_NO_TIME))

        assert graph.snapshot() == before

    def test_restore_skips_relinked_pair(self):
        graph = build_graph()
        removed = graph.remove(LINK_FOUNDERS_NO_TIME)
        graph.insert(PainDesireAudienceLink(id="relinked", pain_desire_id=PD_NO_TIME, audience_id=AUD_FOUNDERS))

        graph.restore(removed)

        assert [link.id for link in graph.links()] == ["relinked"]

    def test_replace_swaps_provisional(self):
        graph = FunnelGraph()
        graph.insert(Audience(id="tmp-1", name="Founders"))

        assert graph.replace("tmp-1", Audience(id="srv-1", name="Founders", sort_order=0))
        assert "tmp-1" not in graph
        assert graph.kind_of("srv-1") == EntityKind.AUDIENCE

    def test_replace_missing_returns_false(self):
        assert FunnelGraph().replace("tmp-1", Audience(id="srv-1", name="x")) is False

    def test_pain_desires_filter_by_kind(self):
        graph = build_graph(extended=True)

        assert [pd.title for pd in graph.pain_desires(PainDesireKind.DESIRE)] == ["Calm mornings"]

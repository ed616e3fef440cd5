"""Tests for the funnel API endpoints, backed by the fake store."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from app.api.funnel_sessions import (
    FunnelSessionRegistry,
    get_brief_author,
    get_session_registry,
    get_suggestion_generator,
)
from app.core.format_templates import FORMAT_TEMPLATES
from app.core.schemas_funnel import AwarenessStage, PainDesireKind
from app.core.schemas_suggestions import (
    AngleSuggestion,
    ApproachRecommendation,
    FormatRecommendation,
    FoundationSuggestions,
    HookSuggestion,
    PainDesireSuggestion,
    StageRecommendation,
)
from app.main import app
from tests.fakes.fake_store import FakeFunnelStore
from tests.fixtures_funnel import (
    ANGLE_BUSYWORK,
    AUD_FOUNDERS,
    AUD_PARENTS,
    HOOK_MORNINGS,
    LINK_PARENTS_NO_TIME,
    OTHER_PROJECT_ID,
    PD_CALM,
    PD_NO_TIME,
    PROJECT_ID,
    PROJECT_ROW,
    funnel_rows,
)

BASE = f"/v1/projects/{PROJECT_ID}"


@pytest.fixture
def store():
    return FakeFunnelStore(rows=funnel_rows(extended=True))


@pytest.fixture
def generator():
    gen = MagicMock()
    gen.suggest_lens_candidates = AsyncMock(return_value=[])
    gen.classify_awareness_stage = AsyncMock(return_value=None)
    gen.draft_concept_notes = AsyncMock(return_value=None)
    gen.recommend_approach = AsyncMock(return_value=None)
    gen.suggest_foundation = AsyncMock(return_value=FoundationSuggestions())
    gen.suggest_angles = AsyncMock(return_value=[])
    gen.suggest_hooks = AsyncMock(return_value=[])
    gen.recommend_formats = AsyncMock(return_value=[])
    return gen


@pytest.fixture
def client(store, generator):
    registry = FunnelSessionRegistry(lambda: store)
    app.dependency_overrides[get_session_registry] = lambda: registry
    app.dependency_overrides[get_suggestion_generator] = lambda: generator
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestFunnel:
    def test_get_funnel_hydrates_once(self, client, store):
        first = client.get(f"{BASE}/funnel")
        second = client.get(f"{BASE}/funnel")

        assert first.status_code == 200
        assert [a["name"] for a in first.json()["audiences"]] == ["Founders", "Busy Parents"]
        assert second.json() == first.json()
        assert [call[0] for call in store.calls] == ["fetch_project", "fetch_funnel_rows"]

    def test_unknown_project(self, client):
        response = client.get(f"/v1/projects/{OTHER_PROJECT_ID}/funnel")

        assert response.status_code == 404

    def test_load_failure(self, client, store):
        store.fail("fetch_funnel_rows")

        response = client.get(f"{BASE}/funnel")

        assert response.status_code == 502

    def test_discard_reloads(self, client, store):
        client.get(f"{BASE}/funnel")

        assert client.delete(f"{BASE}/funnel").json() == {"discarded": True}
        client.get(f"{BASE}/funnel")

        assert [call[0] for call in store.calls].count("fetch_project") == 2


class TestProject:
    def test_patch_principle_and_approach(self, client, store):
        response = client.patch(
            BASE,
            json={"organizing_approach": "desire", "principle_rationale": "Buyers want calm"},
        )

        assert response.status_code == 200
        assert response.json()["entity"]["organizing_approach"] == "desire"
        assert client.get(f"{BASE}/funnel").json()["project"]["principle_rationale"] == "Buyers want calm"
        assert store.projects[PROJECT_ID]["metadata"]["organizing_approach"] == "desire"

    def test_patch_failure_rolls_back(self, client, store):
        client.get(f"{BASE}/funnel")
        store.fail("update_row")

        response = client.patch(BASE, json={"name": "Renamed"})

        assert response.status_code == 502
        assert client.get(f"{BASE}/funnel").json()["project"]["name"] == "Morning Routine App"

    def test_patch_rejects_unknown_approach(self, client):
        response = client.patch(BASE, json={"organizing_approach": "both"})

        assert response.status_code == 422


class TestAudiences:
    def test_create(self, client):
        response = client.post(f"{BASE}/audiences", json={"name": "Freelancers"})

        assert response.status_code == 200
        entity = response.json()["entity"]
        assert entity["id"].startswith("audiences-srv-")
        assert entity["sort_order"] == 2

    def test_create_validation(self, client):
        response = client.post(f"{BASE}/audiences", json={"name": ""})

        assert response.status_code == 422

    def test_remote_failure_rolls_back(self, client, store):
        before = client.get(f"{BASE}/funnel").json()
        store.fail("insert_row")

        response = client.post(f"{BASE}/audiences", json={"name": "Freelancers"})

        assert response.status_code == 502
        assert client.get(f"{BASE}/funnel").json() == before

    def test_update_unknown(self, client):
        response = client.patch(f"{BASE}/audiences/missing", json={"name": "x"})

        assert response.status_code == 404

    def test_delete_cascades_links(self, client):
        response = client.delete(f"{BASE}/audiences/{AUD_PARENTS}")

        assert response.status_code == 200
        assert [e["id"] for e in response.json()["entities"]] == [LINK_PARENTS_NO_TIME]
        links = client.get(f"{BASE}/funnel").json()["links"]
        assert all(link["audience_id"] != AUD_PARENTS for link in links)


class TestPainDesiresAndLinks:
    def test_create_pain_desire(self, client):
        response = client.post(
            f"{BASE}/pain-desires", json={"kind": "desire", "title": "Feel in control", "intensity": 7}
        )

        assert response.status_code == 200
        assert response.json()["entity"]["kind"] == "desire"

    def test_duplicate_link(self, client):
        response = client.post(
            f"{BASE}/links", json={"pain_desire_id": PD_NO_TIME, "audience_id": AUD_FOUNDERS}
        )

        assert response.status_code == 422

    def test_toggle_link(self, client):
        response = client.post(
            f"{BASE}/links/toggle", json={"pain_desire_id": PD_CALM, "audience_id": AUD_FOUNDERS}
        )

        assert response.status_code == 200
        matrix = client.get(f"{BASE}/matrix").json()
        calm = [row for row in matrix["rows"] if row["pain_desire"]["id"] == PD_CALM][0]
        assert calm["linked"] == [True, False]

    def test_intersections(self, client):
        response = client.get(f"{BASE}/intersections")

        body = response.json()
        assert len(body["intersections"]) == 2
        assert body["intersections"][0]["angles"][0]["id"] == ANGLE_BUSYWORK
        assert body["orphaned_angles"] == []


class TestAnglesAndHooks:
    def test_angle_needs_linked_pair(self, client):
        response = client.post(
            f"{BASE}/angles",
            json={"pain_desire_id": PD_CALM, "audience_id": AUD_FOUNDERS, "title": "Calm by default"},
        )

        assert response.status_code == 422

    def test_set_lens(self, client):
        response = client.put(
            f"{BASE}/angles/{ANGLE_BUSYWORK}/lenses/objections", json={"text": "Setup takes too long"}
        )

        assert response.status_code == 200
        assert response.json()["entity"]["lenses"] == {"objections": "Setup takes too long"}

    def test_move_by_stage_and_index(self, client, store):
        response = client.post(
            f"{BASE}/hooks/{HOOK_MORNINGS}/move", json={"stage": "most_aware", "index": 0}
        )

        assert response.status_code == 200
        assert response.json()["entity"]["awareness_stage"] == "most_aware"
        assert store.writes() == [("update_row", "hooks")]

    def test_drop_on_itself_is_noop(self, client, store):
        response = client.post(f"{BASE}/hooks/{HOOK_MORNINGS}/move", json={"over_id": HOOK_MORNINGS})

        assert response.status_code == 200
        assert response.json()["entity"]["awareness_stage"] == "product_aware"
        assert store.writes() == []

    def test_move_needs_a_target(self, client):
        response = client.post(f"{BASE}/hooks/{HOOK_MORNINGS}/move", json={"stage": "unaware"})

        assert response.status_code == 422

    def test_board(self, client):
        columns = client.get(f"{BASE}/board").json()["columns"]

        assert [c["stage"] for c in columns] == [
            "unaware",
            "problem_aware",
            "solution_aware",
            "product_aware",
            "most_aware",
        ]
        assert [h["id"] for h in columns[3]["hooks"]] == [HOOK_MORNINGS]

    def test_star(self, client):
        response = client.post(f"{BASE}/hooks/{HOOK_MORNINGS}/star", json={"starred": False})

        assert response.json()["entity"]["starred"] is False


class TestFormatExecutions:
    def test_toggle_adds_then_removes(self, client):
        body = {"hook_id": HOOK_MORNINGS, "template_id": "uvt-myth-buster"}

        added = client.post(f"{BASE}/format-executions/toggle", json=body)
        removed = client.post(f"{BASE}/format-executions/toggle", json=body)

        assert added.status_code == 200
        assert added.json()["entity"]["template_id"] == "uvt-myth-buster"
        assert removed.status_code == 200
        assert client.get(f"{BASE}/funnel").json()["format_executions"] == []

    def test_duplicate_template(self, client):
        body = {"hook_id": HOOK_MORNINGS, "template_id": "uvt-myth-buster"}
        client.post(f"{BASE}/format-executions", json=body)

        response = client.post(f"{BASE}/format-executions", json=body)

        assert response.status_code == 422

    def test_select_all_then_clear(self, client, store):
        selected = client.post(f"{BASE}/hooks/{HOOK_MORNINGS}/formats/select-all")

        assert selected.status_code == 200
        assert len(selected.json()["entities"]) == len(FORMAT_TEMPLATES)

        cleared = client.delete(f"{BASE}/hooks/{HOOK_MORNINGS}/formats")

        assert cleared.status_code == 200
        assert client.get(f"{BASE}/funnel").json()["format_executions"] == []
        assert store.writes()[-1] == ("delete_rows", "format_executions")

    def test_clear_unknown_hook(self, client):
        response = client.delete(f"{BASE}/hooks/missing/formats")

        assert response.status_code == 404


class TestSuggestions:
    def test_accept_batch(self, client):
        response = client.post(
            f"{BASE}/suggestions/accept",
            json={
                "kind": "hooks",
                "angle_id": ANGLE_BUSYWORK,
                "stage": "problem_aware",
                "candidates": [{"content": "Still triaging at 10?"}, {"content": "Inbox zero is a lie", "type": "contradiction"}],
            },
        )

        assert response.status_code == 200
        hooks = response.json()["entities"]
        assert [h["origin"] for h in hooks] == ["ai_generated", "ai_generated"]

    def test_accept_failure_adds_nothing(self, client, store):
        store.fail("insert_rows")

        response = client.post(
            f"{BASE}/suggestions/accept",
            json={"kind": "audiences", "candidates": [{"name": "A"}, {"name": "B"}, {"name": "C"}]},
        )

        assert response.status_code == 502
        assert len(client.get(f"{BASE}/funnel").json()["audiences"]) == 2

    def test_classify_without_suggestion(self, client):
        response = client.post(f"{BASE}/hooks/{HOOK_MORNINGS}/classify")

        assert response.status_code == 503

    def test_classify_moves_hook(self, client, generator):
        generator.classify_awareness_stage.return_value = StageRecommendation(stage="unaware")

        response = client.post(f"{BASE}/hooks/{HOOK_MORNINGS}/classify")

        assert response.status_code == 200
        assert response.json()["entity"]["awareness_stage"] == "unaware"

    def test_fill_lenses_unknown_angle(self, client):
        response = client.post(f"{BASE}/angles/missing/lenses/fill")

        assert response.status_code == 404

    def test_approach_uses_project_description(self, client, generator):
        generator.recommend_approach.return_value = ApproachRecommendation(
            recommendation="pain", rationale="Acute daily problem"
        )

        response = client.post(f"{BASE}/suggestions/approach")

        assert response.status_code == 200
        assert response.json()["recommendation"]["recommendation"] == "pain"
        generator.recommend_approach.assert_awaited_once_with(PROJECT_ROW["description"])

    def test_approach_unavailable(self, client):
        response = client.post(f"{BASE}/suggestions/approach")

        assert response.json() == {"recommendation": None}

    def test_foundation_with_description_override(self, client, generator):
        generator.suggest_foundation.return_value = FoundationSuggestions(
            pains=[PainDesireSuggestion(kind="pain", title="Inbox overload")]
        )

        response = client.post(f"{BASE}/suggestions/foundation", json={"product_description": "A mail triage bot"})

        assert response.status_code == 200
        assert [p["title"] for p in response.json()["pains"]] == ["Inbox overload"]
        generator.suggest_foundation.assert_awaited_once_with("A mail triage bot", PainDesireKind.PAIN)

    def test_angles_for_intersection(self, client, generator):
        generator.suggest_angles.return_value = [AngleSuggestion(title="Reclaim the first hour")]

        response = client.post(
            f"{BASE}/suggestions/angles",
            json={"pain_desire_id": PD_NO_TIME, "audience_id": AUD_FOUNDERS},
        )

        assert response.status_code == 200
        assert [a["title"] for a in response.json()["angles"]] == ["Reclaim the first hour"]
        existing = generator.suggest_angles.call_args.kwargs["existing"]
        assert [a.id for a in existing] == [ANGLE_BUSYWORK]

    def test_angles_unknown_audience(self, client):
        response = client.post(
            f"{BASE}/suggestions/angles",
            json={"pain_desire_id": PD_NO_TIME, "audience_id": "missing"},
        )

        assert response.status_code == 404

    def test_hooks_for_angle(self, client, generator):
        generator.suggest_hooks.return_value = [HookSuggestion(content="Still triaging at 10?")]

        response = client.post(
            f"{BASE}/suggestions/hooks",
            json={"angle_id": ANGLE_BUSYWORK, "stage": "problem_aware"},
        )

        assert response.status_code == 200
        assert response.json()["hooks"] == [{"content": "Still triaging at 10?", "type": "question"}]
        call = generator.suggest_hooks.call_args
        assert call.args[2] == AwarenessStage.PROBLEM_AWARE
        assert call.kwargs["pain_desire"].id == PD_NO_TIME
        assert call.kwargs["audience"].id == AUD_FOUNDERS

    def test_hooks_without_suggestions(self, client):
        response = client.post(f"{BASE}/suggestions/hooks", json={"angle_id": ANGLE_BUSYWORK})

        assert response.json() == {"hooks": []}

    def test_format_recommendations_then_accept(self, client, generator):
        generator.recommend_formats.return_value = [
            FormatRecommendation(format_id="uvt-myth-buster", rank=1, rationale="Contrarian hook")
        ]

        recommendations = client.post(
            f"{BASE}/suggestions/formats", json={"hook_id": HOOK_MORNINGS}
        ).json()["recommendations"]
        response = client.post(
            f"{BASE}/suggestions/accept",
            json={"kind": "format_executions", "hook_id": HOOK_MORNINGS, "candidates": recommendations},
        )

        assert response.status_code == 200
        assert [e["template_id"] for e in response.json()["entities"]] == ["uvt-myth-buster"]

    def test_formats_unknown_hook(self, client):
        response = client.post(f"{BASE}/suggestions/formats", json={"hook_id": "missing"})

        assert response.status_code == 404


class TestBrief:
    def test_brief_json(self, client):
        response = client.get(f"{BASE}/brief")

        body = response.json()
        assert response.status_code == 200
        assert body["cover"]["title"] == "Morning Routine App: Creative Strategy Brief"
        assert body["hook_groups"][0]["hooks"][0]["content"] == "What if mornings took 10 minutes?"

    def test_brief_sections(self, client):
        body = client.get(f"{BASE}/brief", params={"sections": "audiences, hooks"}).json()

        assert body["included_sections"] == ["audiences", "hooks"]
        assert body["angle_groups"] == []

    def test_unknown_section(self, client):
        response = client.get(f"{BASE}/brief", params={"sections": "appendix"})

        assert response.status_code == 422

    def test_markdown_download(self, client):
        response = client.get(f"{BASE}/brief/markdown")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/markdown")
        assert response.headers["cache-control"] == "no-store"
        assert 'filename="morning-routine-app-brief.md"' in response.headers["content-disposition"]
        assert response.text.startswith("# Morning Routine App: Creative Strategy Brief")

    def test_author_from_settings(self, client):
        assert client.get(f"{BASE}/brief").json()["cover"]["author"] == "flnt"

    def test_author_override(self, client):
        app.dependency_overrides[get_brief_author] = lambda: "Studio North"

        body = client.get(f"{BASE}/brief").json()

        assert body["cover"]["author"] == "Studio North"

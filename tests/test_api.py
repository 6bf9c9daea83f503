"""HTTP surface over the engine."""

from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from creative_engine.api.app import create_app
from tests.helpers import add_item

SCRIPT_JSON = json.dumps({"script": [{"time": "0:00-0:05", "label": "HOOK", "desc": "x"}], "hooks": ["h"]})


@pytest.fixture
def client(engine) -> TestClient:
    return TestClient(create_app(engine))


def _create_project(client: TestClient) -> str:
    resp = client.post("/api/projects", json={"name": "  Spring push ", "brandContext": {"brand": "Matiks"}})
    assert resp.status_code == 200
    return resp.json()["project"]["id"]


def test_health(client) -> None:
    resp = client.get("/api/health")

    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
    assert resp.json()["hasOpenaiKey"] is False


def test_project_lifecycle(client) -> None:
    project_id = _create_project(client)

    assert client.get(f"/api/projects/{project_id}").json()["project"]["name"] == "Spring push"
    assert [p["id"] for p in client.get("/api/projects").json()["projects"]] == [project_id]
    assert client.get(f"/api/items/{project_id}/concepts").json() == {"items": []}


def test_missing_project_name_is_a_client_error(client) -> None:
    resp = client.post("/api/projects", json={"name": " "})

    assert resp.status_code == 400
    assert resp.json() == {"error": "Project name required"}


def test_unknown_project_is_404(client) -> None:
    resp = client.get("/api/projects/nope")

    assert resp.status_code == 404
    assert resp.json() == {"error": "Project not found"}


def test_flip_flop_shows_up_as_contradiction(client, engine) -> None:
    project_id = _create_project(client)
    item = add_item(engine, project_id, "concepts", "Hook A")
    url = f"/api/items/{project_id}/concepts/{item['id']}"

    assert client.post(f"{url}/status", json={"status": "approved"}).status_code == 200
    resp = client.post(f"{url}/status", json={"status": "rejected", "comment": "on second thought"})
    assert resp.json()["item"]["status"] == "rejected"

    (contradiction,) = client.get(f"/api/contradictions/{project_id}").json()["contradictions"]
    assert contradiction["type"] == "direct"
    assert [e["action"] for e in client.get(f"/api/feedback/{project_id}").json()["feedback"]] == [
        "approved",
        "rejected",
    ]
    patterns = client.get(f"/api/patterns/{project_id}").json()["patterns"]
    assert patterns["rejected"][0]["comment"] == "on second thought"
    assert client.get(f"/api/context/{project_id}").json()["summary"]["activeContradictions"] == 1


def test_invalid_status_and_blank_comment_are_rejected(client, engine) -> None:
    project_id = _create_project(client)
    item = add_item(engine, project_id, "concepts", "Hook A")
    url = f"/api/items/{project_id}/concepts/{item['id']}"

    assert client.post(f"{url}/status", json={"status": "shipped"}).json() == {"error": "Invalid status"}
    resp = client.post(f"{url}/comment", json={"comment": "   "})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Comment required"}
    assert client.get(f"/api/feedback/{project_id}").json() == {"feedback": []}


def test_comment_on_missing_item_is_404(client) -> None:
    project_id = _create_project(client)

    resp = client.post(f"/api/items/{project_id}/concepts/nope/comment", json={"comment": "hi"})

    assert resp.status_code == 404


def test_batch_scripts_returns_count_then_persists(client, engine, text_provider) -> None:
    text_provider.reply = lambda system, user: SCRIPT_JSON
    project_id = _create_project(client)
    a = add_item(engine, project_id, "concepts", "A", status="approved")
    b = add_item(engine, project_id, "concepts", "B", status="approved")
    add_item(engine, project_id, "concepts", "C")

    resp = client.post("/api/generate/scripts/batch", json={"projectId": project_id})

    assert resp.json()["status"] == "generating"
    assert resp.json()["count"] == 2
    scripts = client.get(f"/api/items/{project_id}/scripts").json()["items"]
    assert {s["parentId"] for s in scripts} == {a["id"], b["id"]}

    again = client.post("/api/generate/scripts/batch", json={"projectId": project_id}).json()
    assert again["count"] == 0
    assert again["message"] == "All approved concepts already have scripts."


def test_missing_provider_key_is_reported(engine) -> None:
    from creative_engine.engine import Engine, _get_openai_text

    keyless = Engine.build(store=engine.store, assets=engine.assets, text_provider=_get_openai_text)
    client = TestClient(create_app(keyless))
    project_id = _create_project(client)

    resp = client.post("/api/generate/strategies", json={"projectId": project_id})

    assert resp.status_code == 400
    assert resp.json() == {"error": "OPENAI_API_KEY is not set"}


def test_storyboard_frames_are_served(client, engine, text_provider) -> None:
    text_provider.reply = lambda system, user: json.dumps(
        [{"scene": "HOOK", "description": "d", "image_prompt": "phone on a pillow", "notes": ""}]
    )
    project_id = _create_project(client)
    script = add_item(engine, project_id, "scripts", "Script: A")

    resp = client.post("/api/images/storyboard", json={"projectId": project_id, "scriptId": script["id"]})
    image_url = resp.json()["item"]["frames"][0]["imageUrl"]

    frame = client.get(image_url)
    assert frame.status_code == 200
    assert frame.headers["content-type"] == "image/png"
    assert client.get(f"/api/images/{project_id}/frames/missing.png").status_code == 404

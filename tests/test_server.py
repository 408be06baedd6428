from __future__ import annotations

import pytest
import yaml
from fastapi.testclient import TestClient

import app.server as server
from app.server import app

from conftest import FakeSite, html_page, words


@pytest.fixture
def client(tmp_path, monkeypatch, store):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        yaml.safe_dump({
            "logging": {"level": "WARNING", "file": ""},
            "storage": {"graphs_dir": str(store.root_dir)},
        })
    )
    monkeypatch.setenv("INTENTSPACE_CONFIG", str(config_path))
    with TestClient(app) as test_client:
        yield test_client


def test_health(client, ready_graph):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "graphs": 1}


def test_graph(client, ready_graph):
    analysis, intents = ready_graph
    body = client.get(f"/api/graph/{analysis.id}").json()

    assert body["graph_id"] == analysis.id
    assert body["status"] == "ready"
    assert body["intents_count"] == 3
    assert [n["id"] for n in body["nodes"]] == [i.id for i in intents]
    assert "centroid_embedding" not in body["nodes"][0]
    assert body["edges"][0]["reason"] == "semantic_similarity"


def test_unknown_graph(client):
    response = client.get("/api/graph/does-not-exist")
    assert response.status_code == 404
    assert "error" in response.json()


def test_node(client, ready_graph):
    analysis, intents = ready_graph
    body = client.get(f"/api/graph/{analysis.id}/nodes/{intents[0].id}").json()

    assert body["node_id"] == intents[0].id
    assert body["title"] == "Solar & Panels & Energy"
    assert len(body["evidence"]) == 4


def test_unknown_node(client, ready_graph):
    analysis, _ = ready_graph
    response = client.get(f"/api/graph/{analysis.id}/nodes/nope")
    assert response.status_code == 404
    assert response.json() == {"error": "Intent not found: nope"}


def test_search(client, ready_graph):
    analysis, intents = ready_graph
    response = client.post("/api/search", json={"graph_id": analysis.id, "query": "pricing plans"})

    assert response.status_code == 200
    results = response.json()["results"]
    assert results[0]["node_id"] == intents[1].id
    assert len(results[0]["evidence"]) == 1


def test_search_empty_query(client, ready_graph):
    analysis, _ = ready_graph
    response = client.post("/api/search", json={"graph_id": analysis.id, "query": ""})
    assert response.json() == {"results": []}


def test_search_unknown_graph(client):
    response = client.post("/api/search", json={"graph_id": "nope", "query": "solar"})
    assert response.status_code == 404


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"url": "ftp://site.test/"},
        {"url": "https://site.test/", "max_pages": 0},
    ],
)
def test_analyze_rejects_bad_input(client, payload):
    response = client.post("/api/analyze", json=payload)
    assert response.status_code == 400
    assert response.json()["error"]


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/nothing-here")
    assert response.status_code == 404
    assert "error" in response.json()


def test_analyze_builds_and_serves_a_graph(client, monkeypatch):
    site = FakeSite({
        "https://site.test/": html_page("Home", words("alpha", 60), ("/b", "/c")),
        "https://site.test/b": html_page("Beta", words("beta", 600)),
        "https://site.test/c": html_page("Gamma", words("gamma", 600)),
    })
    monkeypatch.setattr(server._pipeline, "transport", site.transport)

    response = client.post(
        "/api/analyze",
        json={"url": "https://site.test/", "max_pages": 3, "max_depth": 1},
    )

    assert response.status_code == 200
    body = response.json()
    assert set(body) == {"graph_id", "pages_crawled", "chunks", "intents", "status"}
    assert body["status"] == "ready"
    assert body["pages_crawled"] == 3
    assert body["chunks"] == 5

    graph = client.get(f"/api/graph/{body['graph_id']}").json()
    assert graph["source_url"] == "https://site.test/"
    assert len(graph["nodes"]) == body["intents"]

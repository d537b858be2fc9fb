"""Tests for the reference and admin API endpoints."""

import pytest
from fastapi.testclient import TestClient

from refengine.core.reference_codec import encode
from refengine.core.schemas_references import EntityType
from refengine.main import app
from refengine.services.entity_client import get_entity_client
from tests.fakes.fake_catalog import FakeCatalog
from tests.fixtures_catalog import GRAPPLE_TOKEN


@pytest.fixture
def fake_catalog():
    catalog = FakeCatalog()
    app.dependency_overrides[get_entity_client] = catalog.client
    yield catalog
    app.dependency_overrides.clear()


@pytest.fixture
def client(fake_catalog):
    return TestClient(app)


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------


def test_decode_endpoint(client):
    response = client.post("/v1/references/decode", json={"document": f"<p>Veja {GRAPPLE_TOKEN}</p>"})

    assert response.status_code == 200
    segments = response.json()["segments"]
    assert [s["kind"] for s in segments] == ["text", "reference", "text"]
    assert segments[1]["id"] == "r1"
    assert segments[1]["entity_type"] == "Regra"
    assert segments[1]["label"] == "Agarrar"


def test_encode_endpoint(client):
    response = client.post(
        "/v1/references/encode",
        json={"entity_type": "Magia", "id": "s2", "label": "Bola de Fogo"},
    )

    assert response.status_code == 200
    assert response.json()["token"] == encode(EntityType.SPELL, "s2", "Bola de Fogo")


def test_encode_rejects_unknown_type(client):
    response = client.post(
        "/v1/references/encode",
        json={"entity_type": "Item", "id": "x", "label": "X"},
    )
    assert response.status_code == 422


def test_render_canonical(client):
    legacy = '<p><span data-type="mention" data-id="a1">Fúria</span></p>'

    response = client.post("/v1/references/render", json={"document": legacy, "mode": "canonical"})

    assert response.status_code == 200
    assert response.json()["html"] == f"<p>{encode(EntityType.RULE, 'a1', 'Fúria')}</p>"


def test_render_badges(client):
    response = client.post("/v1/references/render", json={"document": f"<p>{GRAPPLE_TOKEN}</p>"})

    html = response.json()["html"]
    assert 'class="mention-badge"' in html
    assert 'data-id="r1"' in html
    assert 'data-entity-type="Regra"' in html
    assert '<span class="mention-badge__type">Rule</span>' in html
    assert '<span class="mention-badge__label">Agarrar</span>' in html


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


def test_search_endpoint(client):
    response = client.get("/v1/references/search", params={"q": "fgo", "limit": 3})

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == len(data["candidates"]) <= 3
    assert data["candidates"][0]["label"] == "Fogo"
    assert data["candidates"][0]["entity_type"] == "Magia"


def test_search_excludes_current_entity(client):
    response = client.get("/v1/references/search", params={"q": "fogo", "exclude_id": "s1"})

    ids = [c["id"] for c in response.json()["candidates"]]
    assert "s1" not in ids
    assert "s2" in ids


def test_search_with_catalog_down_returns_empty(client, fake_catalog):
    fake_catalog.failing = set(EntityType)

    response = client.get("/v1/references/search", params={"q": "fogo"})

    assert response.status_code == 200
    assert response.json() == {"candidates": [], "total": 0}


def test_search_limit_validation(client):
    assert client.get("/v1/references/search", params={"q": "x", "limit": 0}).status_code == 422


# ---------------------------------------------------------------------------
# Preview
# ---------------------------------------------------------------------------


def test_preview_endpoint(client):
    response = client.get("/v1/references/Magia/s2/preview")

    assert response.status_code == 200
    data = response.json()
    assert data["resolution"]["status"] == "resolved"
    assert data["preview"]["title"] == "Bola de Fogo"
    assert data["preview"]["subtitle"] == "Spell"
    assert {"name": "Circle", "value": "Circle 3"} in data["preview"]["properties"]


def test_preview_accepts_english_type_name(client):
    response = client.get("/v1/references/feat/f1/preview")

    assert response.status_code == 200
    assert response.json()["preview"]["entity_type"] == "Talento"


def test_preview_missing_entity(client):
    response = client.get("/v1/references/Regra/nope/preview")

    assert response.status_code == 200
    data = response.json()
    assert data["resolution"]["status"] == "not_found"
    assert data["preview"] is None
    assert data["message"] == "No information available"


def test_preview_catalog_error(client, fake_catalog):
    fake_catalog.failing = {EntityType.ABILITY}

    response = client.get("/v1/references/Habilidade/a1/preview")

    assert response.status_code == 200
    assert response.json()["resolution"]["status"] == "error"
    assert response.json()["preview"] is None


def test_preview_unknown_type(client):
    response = client.get("/v1/references/Item/x/preview")
    assert response.status_code == 422


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------


def test_mention_audit_endpoint(client):
    response = client.get("/v1/admin/mention-audit")

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert [(e["entity_type"], e["id"]) for e in data["entries"]] == [
        ("Regra", "r3"),
        ("Habilidade", "a2"),
    ]


def test_preview_with_odd_payload_still_renders(client, fake_catalog):
    fake_catalog.items[EntityType.FEAT].append({"_id": "f9", "name": "Estranho", "prerequisites": 3})

    response = client.get("/v1/references/Talento/f9/preview")

    assert response.status_code == 200
    assert response.json()["preview"]["title"] == "Estranho"

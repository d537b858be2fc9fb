"""Tests for the unlinked mention audit."""

import pytest

from refengine.core.mention_audit import audit_entities, count_unlinked_mentions, needs_review
from refengine.core.schemas_references import EntityType
from tests.fixtures_catalog import GRAPPLE_TOKEN


def test_linked_mentions_are_not_counted():
    assert count_unlinked_mentions(f"<p>Veja {GRAPPLE_TOKEN}.</p>") == 0
    assert not needs_review(f"<p>Veja {GRAPPLE_TOKEN}.</p>")


def test_plain_at_signs_are_counted():
    doc = f"<p>Veja @Agarrar e {GRAPPLE_TOKEN}, depois @Fúria.</p>"

    assert count_unlinked_mentions(doc) == 2
    assert needs_review(doc)


def test_at_signs_inside_markup_are_ignored():
    doc = '<p><a href="mailto:gm@example.com">contato</a></p>'
    assert count_unlinked_mentions(doc) == 0


def test_at_sign_in_reference_label_is_not_unlinked():
    from refengine.core.reference_codec import encode

    doc = encode(EntityType.RULE, "r7", "@Legacy")
    assert count_unlinked_mentions(doc) == 0


def test_empty_document():
    assert count_unlinked_mentions(None) == 0
    assert count_unlinked_mentions("") == 0


@pytest.mark.asyncio
async def test_audit_lists_entities_with_unlinked_mentions(catalog):
    entries = await audit_entities(client=catalog.client())

    assert [(e.entity_type, e.id) for e in entries] == [
        (EntityType.RULE, "r3"),
        (EntityType.ABILITY, "a2"),
    ]
    assert entries[0].name == "Regra Antiga"
    assert entries[0].status == "inactive"
    assert entries[1].unlinked_count == 1


@pytest.mark.asyncio
async def test_audit_requests_every_status(catalog):
    await audit_entities(client=catalog.client(), limit=50)

    for entity_type in EntityType:
        request = catalog.list_requests(entity_type)[0]
        assert "status" not in request.url.params
        assert request.url.params["limit"] == "50"


@pytest.mark.asyncio
async def test_audit_skips_failing_collection(catalog):
    catalog.failing = {EntityType.RULE}

    entries = await audit_entities(client=catalog.client())

    assert [e.id for e in entries] == ["a2"]


@pytest.mark.asyncio
async def test_audit_limited_to_selected_types(catalog):
    entries = await audit_entities(client=catalog.client(), entity_types=[EntityType.SPELL])

    assert entries == []
    assert catalog.list_requests(EntityType.RULE) == []

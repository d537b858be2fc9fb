"""Tests for read-only badge rendering."""

from refengine.core.reference_codec import encode
from refengine.core.reference_render import render_badges
from refengine.core.schemas_references import EntityType


def test_badge_label_is_escaped_text():
    html = render_badges(encode(EntityType.RULE, "r1", "Dano<5 & mais"))

    assert '<span class="mention-badge__label">Dano&lt;5 &amp; mais</span>' in html


def test_markup_in_label_is_not_injected():
    html = render_badges(encode(EntityType.ABILITY, "a1", '<b onmouseover="alert(1)">Fúria</b>'))

    assert "<b" not in html
    assert "&lt;b onmouseover=" in html


def test_document_markup_around_badges_is_kept():
    html = render_badges(f"<p><em>Veja</em> {encode(EntityType.SPELL, 's1', 'Fogo')}</p>")

    assert html.startswith("<p><em>Veja</em> <span class=\"mention-badge\"")
    assert '<span class="mention-badge__type">Spell</span>' in html
    assert html.endswith("</span></p>")


def test_nested_reference_in_label_becomes_badge():
    inner = encode(EntityType.SPELL, "s1", "Fogo")
    html = render_badges(encode(EntityType.FEAT, "f9", f"Mestre do {inner}"))

    assert html.count('class="mention-badge"') == 2
    assert 'data-id="s1"' in html
    assert "Mestre do " in html


def test_image_in_document_is_rendered():
    assert render_badges('a<img src="https://cdn.test/a.png">b') == 'a<img src="https://cdn.test/a.png">b'

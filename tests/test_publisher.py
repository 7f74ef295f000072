from __future__ import annotations

from datetime import date

import pytest

from guidewriter.models.guide import Category, CuratedSet, Document
from guidewriter.services import publisher as publisher_module
from guidewriter.services.publisher import Publisher, area_to_filename, build_frontmatter, build_tags
from tests.conftest import make_route


@pytest.mark.parametrize(
    "area,expected",
    [
        ("Rock Canyon", "rockcanyon.mdx"),
        ("American Fork", "americanfork.mdx"),
        ("Joe's Valley", "joesvalley.mdx"),
        ("Little Cottonwood Canyon - Gate Buttress", "littlecottonwoodcanyon-gatebuttress.mdx"),
        ("!!!", "area.mdx"),
    ],
)
def test_area_to_filename(area, expected):
    assert area_to_filename(area) == expected


def test_frontmatter_fields():
    text = build_frontmatter(
        "Rock Canyon", tags=["area", "rock canyon"], published=False, today=date(2026, 5, 1)
    )
    assert text.splitlines() == [
        "---",
        'title: "Rock Canyon Climbing Guide"',
        'description: "A curated route guide to Rock Canyon."',
        'date: "2026-05-01"',
        'tags: ["area", "rock canyon"]',
        "published: false",
        "---",
    ]


def test_tags_include_route_styles_once():
    curated = CuratedSet(
        categories={
            Category.CLASSIC: [make_route(1), make_route(2, style="trad")],
            Category.BOULDERS: [make_route(3, style="boulder")],
        }
    )
    assert build_tags("Rock Canyon", curated) == ["area", "rock canyon", "trad", "sport", "bouldering"]


def test_publish_writes_frontmatter_and_document(tmp_path):
    document = Document(title="Rock Canyon Climbing Guide", introduction="Intro.", reviewed_body="# Body\n")
    path = Publisher(tmp_path / "content", published=True).publish(
        "Rock Canyon", document, today=date(2026, 5, 1)
    )

    assert path == tmp_path / "content" / "rockcanyon.mdx"
    content = path.read_text(encoding="utf-8")
    assert content.startswith("---\ntitle: ")
    assert "published: true\n---\n\n# Body\n" in content
    assert [p.name for p in path.parent.iterdir()] == ["rockcanyon.mdx"]


def test_failed_write_leaves_existing_file(tmp_path, monkeypatch):
    target = tmp_path / "rockcanyon.mdx"
    target.write_text("old guide", encoding="utf-8")

    def boom(path, content):
        raise OSError("disk full")

    monkeypatch.setattr(publisher_module, "atomic_write_text", boom)
    document = Document(title="T", introduction="I")
    with pytest.raises(OSError):
        Publisher(tmp_path).publish("Rock Canyon", document)
    assert target.read_text(encoding="utf-8") == "old guide"

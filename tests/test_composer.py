from __future__ import annotations

import json

import pytest

from guidewriter.agents.composer import ComposerAgent
from guidewriter.errors import CompositionError
from guidewriter.models.guide import Category, CuratedSet, render_entry
from tests.conftest import make_route

FRAMING = json.dumps(
    {
        "title": "Rock Canyon Climbing Guide",
        "introduction": "Quartzite walls a few minutes from Provo.",
        "section_intros": {"classic": "The routes everyone comes back for."},
    }
)


def _curated() -> CuratedSet:
    return CuratedSet(
        categories={
            Category.BEGINNER: [make_route(1, grade="5.7"), make_route(2, grade="5.8")],
            Category.INTERMEDIATE: [],
            Category.CLASSIC: [make_route(3, grade="5.10c"), make_route(4, style="trad", grade="5.9")],
            Category.BOULDERS: [make_route(5, style="boulder", grade="V4")],
        }
    )


def test_entries_use_the_literal_format():
    route = make_route(7, style="trad", grade="5.9", name="Corner Crack")
    assert render_entry(route) == (
        "- **Corner Crack** (5.9, trad, Main Wall)\n"
        "  [View on Mountain Project →](https://www.mountainproject.com/route/100007/route-7)"
    )


@pytest.mark.asyncio
async def test_write_renders_one_entry_per_route_and_skips_empty_sections(fake_llm):
    composer = ComposerAgent(model="test/model", client=fake_llm(FRAMING))
    curated = _curated()

    draft = await composer.write("Rock Canyon", curated)
    markdown = draft.render()

    assert markdown.startswith("# Rock Canyon Climbing Guide\n\nQuartzite walls")
    assert "## Beginner Routes (5.6–5.9)" in markdown
    assert "## Classic Routes" in markdown
    assert "## Best Boulders" in markdown
    assert "Intermediate" not in markdown
    assert "The routes everyone comes back for." in markdown
    assert "Here are the best moderate routes graded 5.6 to 5.9 in the area." in markdown
    for route in curated.all_routes():
        assert markdown.count(render_entry(route)) == 1
    assert markdown.count("View on Mountain Project →") == curated.total()
    assert draft.entry_count() == 5
    assert "\n\n---\n\n## Beginner Routes" in markdown


@pytest.mark.asyncio
async def test_compose_makes_exactly_two_calls_and_uses_review(fake_llm):
    reviewed = "# Rock Canyon Climbing Guide\n\nReviewed body."
    llm = fake_llm(FRAMING, f"```markdown\n{reviewed}\n```")
    composer = ComposerAgent(model="test/model", client=llm)

    document = await composer.compose("Rock Canyon", _curated())

    assert len(llm.messages.calls) == 2
    assert document.markdown == reviewed + "\n"
    review_prompt = llm.messages.prompts[1]
    assert "- **Route Name** (Grade, Style, Location)" in review_prompt
    assert "https://www.mountainproject.com/route/100003/route-3" in review_prompt


@pytest.mark.asyncio
async def test_blank_review_keeps_the_draft(fake_llm):
    composer = ComposerAgent(model="test/model", client=fake_llm(FRAMING, "   "))

    document = await composer.compose("Rock Canyon", _curated())

    assert document.reviewed_body is None
    assert document.markdown == document.render()


@pytest.mark.asyncio
async def test_unusable_framing_is_a_composition_error(fake_llm):
    composer = ComposerAgent(model="test/model", client=fake_llm('{"title": "", "introduction": "x"}'))
    with pytest.raises(CompositionError):
        await composer.write("Rock Canyon", _curated())


@pytest.mark.asyncio
async def test_empty_curated_set_is_rejected_without_a_call(fake_llm):
    llm = fake_llm()
    composer = ComposerAgent(model="test/model", client=llm)
    with pytest.raises(CompositionError):
        await composer.write("Rock Canyon", CuratedSet(categories={Category.CLASSIC: []}))
    assert llm.messages.calls == []

from __future__ import annotations

import json
import re
from datetime import date
from pathlib import Path

from loguru import logger

from guidewriter.config import settings
from guidewriter.models.guide import CuratedSet, Document
from guidewriter.services.files import atomic_write_text

STYLE_TAGS = {
    "trad": "trad",
    "sport": "sport",
    "boulder": "bouldering",
    "aid": "aid",
    "mixed": "mixed",
    "top-rope": "top-rope",
}


def area_to_filename(area_name: str) -> str:
    """Lowercase, whitespace removed, anything but [a-z0-9-] stripped."""
    slug = re.sub(r"\s+", "", area_name.lower())
    slug = re.sub(r"[^a-z0-9-]", "", slug)
    return f"{slug or 'area'}.mdx"


def build_tags(area_name: str, curated: CuratedSet | None = None) -> list[str]:
    tags = ["area", area_name.lower()]
    if curated is not None:
        styles = {route.style for route in curated.all_routes()}
        tags.extend(tag for style, tag in STYLE_TAGS.items() if style in styles)
    return tags


def build_frontmatter(
    area_name: str,
    *,
    tags: list[str],
    published: bool,
    today: date | None = None,
) -> str:
    # json.dumps quoting is valid YAML for double-quoted scalars.
    day = (today or date.today()).isoformat()
    return "\n".join(
        [
            "---",
            f"title: {json.dumps(f'{area_name} Climbing Guide', ensure_ascii=False)}",
            f"description: {json.dumps(f'A curated route guide to {area_name}.', ensure_ascii=False)}",
            f'date: "{day}"',
            f"tags: [{', '.join(json.dumps(tag, ensure_ascii=False) for tag in tags)}]",
            f"published: {'true' if published else 'false'}",
            "---",
        ]
    )


class Publisher:
    def __init__(self, content_dir: str | Path | None = None, *, published: bool | None = None):
        self.content_dir = Path(content_dir or settings.content_dir)
        self.published = settings.publish_by_default if published is None else published

    def path_for(self, area_name: str) -> Path:
        return self.content_dir / area_to_filename(area_name)

    def publish(
        self,
        area_name: str,
        document: Document,
        curated: CuratedSet | None = None,
        *,
        today: date | None = None,
    ) -> Path:
        frontmatter = build_frontmatter(
            area_name,
            tags=build_tags(area_name, curated),
            published=self.published,
            today=today,
        )
        path = self.path_for(area_name)
        atomic_write_text(path, f"{frontmatter}\n\n{document.markdown}")
        logger.info(f"Wrote {path}")
        return path

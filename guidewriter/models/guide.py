from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from guidewriter.config import settings
from guidewriter.models.routes import ValidatedRoute


class Category(StrEnum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    HARD = "hard"
    CLASSIC = "classic"
    EPIC = "epic"
    BOULDERS = "boulders"


@dataclass(frozen=True, slots=True)
class CategoryQuota:
    category: Category
    min: int
    max: int
    heading: str
    description: str


@dataclass(frozen=True, slots=True)
class TotalQuota:
    min: int
    max: int
    hard_max: int

    def contains(self, total: int) -> bool:
        return self.min <= total <= self.max


@dataclass(frozen=True, slots=True)
class QuotaSchema:
    categories: tuple[CategoryQuota, ...]
    total: TotalQuota

    def quota(self, category: Category) -> CategoryQuota:
        for quota in self.categories:
            if quota.category == category:
                return quota
        raise KeyError(category)

    @property
    def order(self) -> list[Category]:
        return [quota.category for quota in self.categories]


DEFAULT_CATEGORY_QUOTAS: tuple[CategoryQuota, ...] = (
    CategoryQuota(Category.BEGINNER, 4, 8, "Beginner Routes (5.6–5.9)", "moderate routes graded 5.6 to 5.9"),
    CategoryQuota(Category.INTERMEDIATE, 4, 8, "Intermediate Routes (5.10–5.11)", "routes graded 5.10 to 5.11"),
    CategoryQuota(Category.HARD, 3, 8, "Expert Routes (5.12+)", "routes graded 5.12 and harder"),
    CategoryQuota(Category.CLASSIC, 8, 12, "Classic Routes", "iconic must-do routes regardless of grade"),
    CategoryQuota(Category.EPIC, 2, 6, "Epic Routes", "multi-pitch or notably long routes"),
    CategoryQuota(Category.BOULDERS, 0, 8, "Best Boulders", "boulder problems on the V-scale"),
)


def default_quota_schema() -> QuotaSchema:
    return QuotaSchema(
        categories=DEFAULT_CATEGORY_QUOTAS,
        total=TotalQuota(
            min=settings.curation_total_min,
            max=settings.curation_total_max,
            hard_max=max(settings.curation_total_hard_max, settings.curation_total_max),
        ),
    )


@dataclass
class CuratedSet:
    """Routes allocated to categories; insertion order is display order."""

    categories: dict[Category, list[ValidatedRoute]] = field(default_factory=dict)

    def routes(self, category: Category) -> list[ValidatedRoute]:
        return self.categories.get(category, [])

    def counts(self) -> dict[Category, int]:
        return {category: len(routes) for category, routes in self.categories.items()}

    def total(self) -> int:
        return sum(len(routes) for routes in self.categories.values())

    def non_empty(self) -> list[Category]:
        return [category for category, routes in self.categories.items() if routes]

    def all_routes(self) -> list[ValidatedRoute]:
        return [route for routes in self.categories.values() for route in routes]

    def to_dict(self) -> dict[str, list[dict[str, str]]]:
        return {
            category.value: [
                {
                    "name": r.name,
                    "grade": r.grade,
                    "style": r.style,
                    "location": r.location,
                    "url": r.url,
                }
                for r in routes
            ]
            for category, routes in self.categories.items()
            if routes
        }


ROUTE_LINK_LABEL = "View on Mountain Project →"


def render_entry(route: ValidatedRoute) -> str:
    return (
        f"- **{route.name}** ({route.grade}, {route.style}, {route.location})\n"
        f"  [{ROUTE_LINK_LABEL}]({route.url})"
    )


@dataclass
class GuideSection:
    category: Category
    heading: str
    intro: str
    routes: list[ValidatedRoute]

    def render(self) -> str:
        entries = "\n\n".join(render_entry(route) for route in self.routes)
        return f"## {self.heading}\n\n{self.intro}\n\n{entries}"


@dataclass
class Document:
    title: str
    introduction: str
    sections: list[GuideSection] = field(default_factory=list)
    reviewed_body: str | None = None

    def render(self) -> str:
        parts = [f"# {self.title}", self.introduction]
        parts.extend(section.render() for section in self.sections if section.routes)
        return "\n\n---\n\n".join([f"{parts[0]}\n\n{parts[1]}", *parts[2:]]) + "\n"

    @property
    def markdown(self) -> str:
        return self.reviewed_body if self.reviewed_body is not None else self.render()

    def entry_count(self) -> int:
        return sum(len(section.routes) for section in self.sections)

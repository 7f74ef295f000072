"""Quota-bounded allocation of validated routes into guide categories.

The generation service chooses the allocation by route id; everything it
returns is then re-checked here. Curation runs as two explicit phases:
``attempt`` and, when the total falls short although enough routes exist,
one ``compensate`` call. ``settle`` picks the result that is kept.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, ValidationError

from guidewriter.agents.base import BaseAgent
from guidewriter.config import settings
from guidewriter.models.guide import Category, CuratedSet, QuotaSchema, default_quota_schema
from guidewriter.models.routes import ValidatedRoute
from guidewriter.services.prompt_store import render_prompt
from guidewriter.tools.payloads import extract_json_object

Phase = Literal["attempt", "compensate"]

# Truncation above the hard maximum starts with the first entry.
TRUNCATION_ORDER = (
    Category.BOULDERS,
    Category.EPIC,
    Category.BEGINNER,
    Category.INTERMEDIATE,
    Category.HARD,
    Category.CLASSIC,
)


class AllocationPayload(BaseModel):
    categories: dict[str, list[int]]


@dataclass
class CurationResult:
    curated: CuratedSet
    phase: Phase
    warnings: list[str] = field(default_factory=list)
    parsed: bool = True

    @property
    def total(self) -> int:
        return self.curated.total()


class CuratorAgent(BaseAgent):
    name = "curator"
    system_prompt_key = "curator.system_prompt"

    def __init__(
        self,
        model: str | None = None,
        client: Any | None = None,
        *,
        schema: QuotaSchema | None = None,
        max_tokens: int | None = None,
    ):
        super().__init__(model=model, client=client)
        self.schema = schema or default_quota_schema()
        self.max_tokens = max_tokens or settings.curate_max_tokens

    # -- prompts -----------------------------------------------------------

    def _quota_rules(self) -> str:
        return "\n".join(
            f"- {q.category.value}: {q.min}-{q.max} routes ({q.description})"
            for q in self.schema.categories
        )

    @staticmethod
    def _routes_json(routes: list[ValidatedRoute]) -> str:
        return "\n".join(
            json.dumps(
                {
                    "id": idx,
                    "name": route.name,
                    "grade": route.grade,
                    "style": route.style,
                    "location": route.location,
                },
                ensure_ascii=False,
            )
            for idx, route in enumerate(routes)
        )

    def _common_values(self, area_name: str, routes: list[ValidatedRoute]) -> dict[str, Any]:
        total = self.schema.total
        return {
            "area_name": area_name,
            "routes_json": self._routes_json(routes),
            "quota_rules": self._quota_rules(),
            "total_min": total.min,
            "total_max": total.max,
            "hard_max": total.hard_max,
            "available": len(routes),
        }

    # -- phases ------------------------------------------------------------

    async def attempt(self, area_name: str, routes: list[ValidatedRoute]) -> CurationResult:
        prompt = render_prompt("curator.allocate", **self._common_values(area_name, routes))
        raw = await self.complete(prompt, max_tokens=self.max_tokens, caller="curator.attempt")
        return self.normalize(raw, routes, phase="attempt")

    def needs_compensation(self, result: CurationResult, available: int) -> bool:
        minimum = self.schema.total.min
        return result.total < minimum and available >= minimum

    async def compensate(
        self,
        area_name: str,
        routes: list[ValidatedRoute],
        previous: CurationResult,
    ) -> CurationResult:
        index = {route.key: idx for idx, route in enumerate(routes)}
        previous_allocation = {
            category.value: [index[r.key] for r in members if r.key in index]
            for category, members in previous.curated.categories.items()
        }
        prompt = render_prompt(
            "curator.compensate",
            previous_total=previous.total,
            previous_allocation=json.dumps({"categories": previous_allocation}),
            **self._common_values(area_name, routes),
        )
        raw = await self.complete(prompt, max_tokens=self.max_tokens, caller="curator.compensate")
        return self.normalize(raw, routes, phase="compensate")

    def settle(self, first: CurationResult, retry: CurationResult | None) -> CurationResult:
        """Keep the retry only when it reaches the minimum; otherwise keep the first pass."""
        minimum = self.schema.total.min
        if retry is not None and retry.total >= minimum:
            return retry
        if retry is not None:
            first.warnings.append(
                f"retry reached only {retry.total} routes (minimum {minimum}); "
                f"keeping first allocation of {first.total}"
            )
        return first

    # -- validation --------------------------------------------------------

    def normalize(self, raw_text: str, routes: list[ValidatedRoute], *, phase: Phase) -> CurationResult:
        warnings: list[str] = []
        try:
            payload = AllocationPayload.model_validate(extract_json_object(raw_text))
        except (json.JSONDecodeError, ValidationError) as exc:
            logger.warning(f"Curator {phase} returned an unusable allocation: {exc}")
            result = CurationResult(curated=self._empty_set(), phase=phase, parsed=False)
            result.warnings.append(f"unusable allocation payload in {phase}")
            result.warnings.extend(self._quota_warnings(result.curated))
            return result

        allocation = self._resolve(payload, routes, warnings)
        allocation = self._deduplicate(allocation, warnings)
        self._enforce_category_max(allocation, warnings)
        self._enforce_hard_max(allocation, warnings)
        self._enforce_classic_dominance(allocation, warnings)

        curated = CuratedSet(categories={c: allocation[c] for c in self.schema.order})
        warnings.extend(self._quota_warnings(curated))
        return CurationResult(curated=curated, phase=phase, warnings=warnings)

    def _empty_set(self) -> CuratedSet:
        return CuratedSet(categories={c: [] for c in self.schema.order})

    def _resolve(
        self,
        payload: AllocationPayload,
        routes: list[ValidatedRoute],
        warnings: list[str],
    ) -> dict[Category, list[ValidatedRoute]]:
        allocation: dict[Category, list[ValidatedRoute]] = {c: [] for c in self.schema.order}
        for name, ids in payload.categories.items():
            try:
                category = Category(name.strip().lower())
            except ValueError:
                warnings.append(f"ignored unknown category {name!r}")
                continue
            if category not in allocation:
                warnings.append(f"ignored category {name!r} outside the quota schema")
                continue
            for route_id in ids:
                if 0 <= route_id < len(routes):
                    allocation[category].append(routes[route_id])
                else:
                    warnings.append(f"ignored unknown route id {route_id} in {category.value}")
        return allocation

    def _deduplicate(
        self,
        allocation: dict[Category, list[ValidatedRoute]],
        warnings: list[str],
    ) -> dict[Category, list[ValidatedRoute]]:
        priority = [Category.CLASSIC] if Category.CLASSIC in allocation else []
        priority += [c for c in self.schema.order if c != Category.CLASSIC]

        seen: set[tuple[str, str]] = set()
        deduped: dict[Category, list[ValidatedRoute]] = {}
        for category in priority:
            kept: list[ValidatedRoute] = []
            for route in allocation[category]:
                if route.key in seen:
                    warnings.append(f"removed duplicate {route.name!r} from {category.value}")
                    continue
                seen.add(route.key)
                kept.append(route)
            deduped[category] = kept
        return deduped

    def _enforce_category_max(
        self,
        allocation: dict[Category, list[ValidatedRoute]],
        warnings: list[str],
    ) -> None:
        for quota in self.schema.categories:
            members = allocation[quota.category]
            if len(members) > quota.max:
                warnings.append(
                    f"truncated {quota.category.value} from {len(members)} to {quota.max}"
                )
                del members[quota.max :]

    def _enforce_hard_max(
        self,
        allocation: dict[Category, list[ValidatedRoute]],
        warnings: list[str],
    ) -> None:
        hard_max = self.schema.total.hard_max
        total = sum(len(members) for members in allocation.values())
        if total <= hard_max:
            return

        order = [c for c in TRUNCATION_ORDER if c in allocation]
        order += [c for c in allocation if c not in order]
        before = total
        while total > hard_max:
            above_min = [
                c for c in order if len(allocation[c]) > self.schema.quota(c).min
            ]
            victim = next(iter(above_min), None) or next(c for c in order if allocation[c])
            allocation[victim].pop()
            total -= 1
        warnings.append(f"truncated total from {before} to hard maximum {hard_max}")

    @staticmethod
    def _enforce_classic_dominance(
        allocation: dict[Category, list[ValidatedRoute]],
        warnings: list[str],
    ) -> None:
        if Category.CLASSIC not in allocation:
            return
        classic = allocation[Category.CLASSIC]
        moved = 0
        while True:
            others = [c for c in allocation if c != Category.CLASSIC]
            if not others:
                break
            largest = max(others, key=lambda c: len(allocation[c]))
            if len(allocation[largest]) <= len(classic):
                break
            classic.append(allocation[largest].pop())
            moved += 1
        if moved:
            warnings.append(f"moved {moved} route(s) into classic to keep it the largest category")

    def _quota_warnings(self, curated: CuratedSet) -> list[str]:
        warnings: list[str] = []
        for quota in self.schema.categories:
            count = len(curated.routes(quota.category))
            if count < quota.min:
                warnings.append(f"{quota.category.value} has {count} routes, below its minimum {quota.min}")
        total = curated.total()
        bounds = self.schema.total
        if total < bounds.min:
            warnings.append(f"total {total} is below the minimum {bounds.min}")
        elif total > bounds.max:
            warnings.append(f"total {total} is above the target maximum {bounds.max}")
        return warnings

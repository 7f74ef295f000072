from __future__ import annotations

import re
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator

RouteStyle = Literal["trad", "sport", "boulder", "aid", "mixed", "top-rope"]

ROUTE_URL_PATTERN = re.compile(
    r"^https://www\.mountainproject\.com/route/\d+(?:/[a-z0-9][a-z0-9-]*)?/?$"
)

_YDS = r"5\.(?:\d|1[0-5])(?:[a-d](?:/[a-d])?)?[+-]?"
_HUECO = r"V(?:B|\d{1,2})(?:[+-]|-\d{1,2})?"
_MIXED_ICE = r"(?:M\d{1,2}|WI[1-7])[+-]?"
_AID = r"[AC][0-5]\+?"
_COMMITMENT = r"(?:VII|VI|IV|V|III|II|I)"
# e.g. "5.10c", "V4-5", "III 5.9 C2", "5.10 A0 R", "M5", "WI4", "C2"
GRADE_PATTERN = re.compile(
    rf"^(?:{_COMMITMENT}\s+)?"
    rf"(?:(?:{_YDS}|{_HUECO}|{_MIXED_ICE})(?:\s+{_AID})?|{_AID})"
    rf"(?:\s+(?:PG-?13|PG|R|X))?$"
)

_STYLE_ALIASES = {
    "bouldering": "boulder",
    "toprope": "top-rope",
    "top rope": "top-rope",
    "tr": "top-rope",
}


class CandidateRoute(BaseModel):
    """A route record extracted from research text, not yet link-checked."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: str
    grade: str
    style: RouteStyle
    location: str
    url: str

    @field_validator("name", "location")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("grade")
    @classmethod
    def _recognized_grade(cls, value: str) -> str:
        normalized = re.sub(r"^v", "V", value)
        if not GRADE_PATTERN.match(normalized):
            raise ValueError(f"unrecognized grade {value!r}")
        return normalized

    @field_validator("style", mode="before")
    @classmethod
    def _normalize_style(cls, value: object) -> object:
        if isinstance(value, str):
            lowered = value.strip().lower()
            return _STYLE_ALIASES.get(lowered, lowered)
        return value

    @field_validator("url")
    @classmethod
    def _route_link(cls, value: str) -> str:
        if not ROUTE_URL_PATTERN.match(value):
            raise ValueError(f"not a Mountain Project route link: {value!r}")
        return value

    @property
    def key(self) -> tuple[str, str]:
        """Route identity: the same name at the same link is the same route."""
        return (self.name.casefold(), self.url.rstrip("/"))


class ValidatedRoute(CandidateRoute):
    valid: bool
    status_code: int | None = None

    @classmethod
    def from_candidate(
        cls,
        candidate: CandidateRoute,
        *,
        valid: bool,
        status_code: int | None = None,
    ) -> "ValidatedRoute":
        return cls(**candidate.model_dump(), valid=valid, status_code=status_code)

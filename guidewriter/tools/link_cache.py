"""On-disk cache of link validation verdicts, keyed by canonical URL."""
from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from hashlib import sha256
from pathlib import Path
from typing import Any

from loguru import logger

from guidewriter.config import settings
from guidewriter.services.files import atomic_write_text
from guidewriter.tools.web_utils import canonical_url

CACHE_VERSION = 1


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _cache_key(url: str) -> str:
    material = f"v{CACHE_VERSION}|{canonical_url(url)}"
    return sha256(material.encode("utf-8")).hexdigest()


def cache_path(url: str) -> Path:
    return Path(settings.link_cache_dir) / f"{_cache_key(url)}.json"


def load(url: str) -> dict[str, Any] | None:
    if not settings.link_cache_enabled:
        return None

    path = cache_path(url)
    if not path.exists():
        return None

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        checked_at = datetime.fromisoformat(str(payload["checked_at"]))
    except (OSError, ValueError, KeyError, TypeError):
        return None

    if checked_at.tzinfo is None:
        checked_at = checked_at.replace(tzinfo=timezone.utc)

    ttl = max(int(settings.link_cache_ttl_hours), 0)
    if ttl == 0 or _utc_now() > checked_at + timedelta(hours=ttl):
        return None

    valid = payload.get("valid")
    if not isinstance(valid, bool):
        return None
    status_code = payload.get("status_code")
    if not isinstance(status_code, int):
        status_code = None
    return {"valid": valid, "status_code": status_code}


def save(url: str, *, valid: bool, status_code: int | None) -> None:
    if not settings.link_cache_enabled:
        return

    payload = {
        "version": CACHE_VERSION,
        "url": canonical_url(url),
        "valid": bool(valid),
        "status_code": status_code,
        "checked_at": _utc_now().isoformat(),
    }
    try:
        atomic_write_text(cache_path(url), json.dumps(payload, ensure_ascii=True))
    except OSError as exc:
        logger.debug(f"Could not cache link verdict for {url}: {exc}")

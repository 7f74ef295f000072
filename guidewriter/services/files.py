from __future__ import annotations

import os
import tempfile
from pathlib import Path


def read_text_exact(path: Path) -> str:
    """Read UTF-8 text without newline translation."""
    with open(path, "r", encoding="utf-8", newline="") as fh:
        return fh.read()


def atomic_write_text(path: Path, content: str) -> None:
    """Write to a temp file beside ``path`` then swap it in with one rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_name: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding="utf-8",
            newline="",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(content)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, path)
        tmp_name = None
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)

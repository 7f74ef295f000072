"""Line-oriented work queue backed by a plain text file.

Each non-empty line is one area. Processed lines carry the ``x `` prefix,
and lines that errored out carry ``x [failed] `` plus an optional
``# reason`` annotation. The file is the only state kept between runs.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from guidewriter.errors import QueueError, QueueFileMissingError
from guidewriter.services.files import atomic_write_text, read_text_exact

DONE_MARKER = "x "
FAILED_TAG = "[failed]"
FAILED_MARKER = f"{DONE_MARKER}{FAILED_TAG} "
ANNOTATION_SEPARATOR = " # "

_LINE_RE = re.compile(r"^(?P<indent>\s*)(?P<text>.*?)(?P<trailing>\s*)$", re.DOTALL)


@dataclass(frozen=True, slots=True)
class WorkItem:
    text: str
    line_number: int
    done: bool = False
    failed: bool = False
    annotation: str | None = None

    @classmethod
    def from_line(cls, line: str, line_number: int) -> "WorkItem | None":
        trimmed = line.strip()
        if not trimmed:
            return None
        if trimmed.startswith(FAILED_MARKER):
            body = trimmed[len(FAILED_MARKER):]
            text, _, annotation = body.partition(ANNOTATION_SEPARATOR)
            return cls(
                text=text.strip(),
                line_number=line_number,
                done=True,
                failed=True,
                annotation=annotation.strip() or None,
            )
        if trimmed.startswith(DONE_MARKER):
            return cls(text=trimmed[len(DONE_MARKER):].strip(), line_number=line_number, done=True)
        return cls(text=trimmed, line_number=line_number)


def _one_line(reason: str) -> str:
    return " ".join(reason.split())


class WorkQueue:
    """Reads and rewrites the queue file; never holds it open between calls."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read_lines(self) -> list[str]:
        try:
            content = read_text_exact(self.path)
        except FileNotFoundError as exc:
            raise QueueFileMissingError(f"Queue file not found: {self.path}") from exc
        except OSError as exc:
            raise QueueError(f"Could not read queue file {self.path}: {exc}") from exc
        return content.split("\n")

    def items(self) -> list[WorkItem]:
        parsed = (WorkItem.from_line(line, idx) for idx, line in enumerate(self._read_lines()))
        return [item for item in parsed if item is not None]

    def next_pending(self) -> WorkItem | None:
        """First non-empty line without a marker, in file order."""
        for item in self.items():
            if not item.done:
                return item
        return None

    def pending_count(self) -> int:
        return sum(1 for item in self.items() if not item.done)

    def mark_done(self, item: WorkItem) -> bool:
        return self._mark(item, DONE_MARKER)

    def mark_failed(self, item: WorkItem, reason: str | None = None) -> bool:
        suffix = f"{ANNOTATION_SEPARATOR}{_one_line(reason)}" if reason else ""
        return self._mark(item, FAILED_MARKER, suffix=suffix)

    def _mark(self, item: WorkItem, marker: str, *, suffix: str = "") -> bool:
        lines = self._read_lines()
        target = self._locate(lines, item)
        if target is None:
            logger.warning(
                f"Could not find pending item {item.text!r} in {self.path} to mark; "
                "queue was edited externally"
            )
            return False

        match = _LINE_RE.match(lines[target])
        assert match is not None
        lines[target] = (
            f"{match.group('indent')}{marker}{match.group('text')}{suffix}{match.group('trailing')}"
        )
        try:
            atomic_write_text(self.path, "\n".join(lines))
        except OSError as exc:
            raise QueueError(f"Could not rewrite queue file {self.path}: {exc}") from exc

        state = "failed" if marker == FAILED_MARKER else "done"
        logger.info(f"Marked {item.text!r} as {state} in {self.path}")
        return True

    @staticmethod
    def _locate(lines: list[str], item: WorkItem) -> int | None:
        # Prefer the remembered line; fall back to a scan when lines moved.
        candidates = [item.line_number] if 0 <= item.line_number < len(lines) else []
        candidates.extend(range(len(lines)))
        for idx in candidates:
            parsed = WorkItem.from_line(lines[idx], idx)
            if parsed is not None and not parsed.done and parsed.text == item.text:
                return idx
        return None

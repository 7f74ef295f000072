from __future__ import annotations

import pytest

from guidewriter.errors import QueueError, QueueFileMissingError
from guidewriter.services import work_queue as work_queue_module
from guidewriter.services.work_queue import WorkItem, WorkQueue


def _queue(tmp_path, content: str) -> WorkQueue:
    path = tmp_path / "routes.txt"
    path.write_bytes(content.encode("utf-8"))
    return WorkQueue(path)


def test_next_pending_returns_first_unmarked_line(tmp_path):
    queue = _queue(tmp_path, "Rock Canyon\nx American Fork\n")
    item = queue.next_pending()
    assert item is not None
    assert item.text == "Rock Canyon"


def test_next_pending_skips_marked_and_blank_lines(tmp_path):
    queue = _queue(
        tmp_path,
        "x Indian Creek\n\n   \nx [failed] Joes Valley # ResearchTimeoutError\n  Maple Canyon  \nLittle Cottonwood\n",
    )
    item = queue.next_pending()
    assert item is not None
    assert item.text == "Maple Canyon"
    assert queue.pending_count() == 2


def test_next_pending_returns_none_when_exhausted(tmp_path):
    assert _queue(tmp_path, "x A\nx [failed] B\n\n").next_pending() is None
    assert _queue(tmp_path, "").next_pending() is None


def test_mark_done_preserves_other_lines_byte_for_byte(tmp_path):
    original = "x Indian Creek\r\n  Rock Canyon \r\nMaple Canyon\r\n"
    queue = _queue(tmp_path, original)
    item = queue.next_pending()

    assert queue.mark_done(item) is True

    updated = queue.path.read_bytes().decode("utf-8")
    assert updated == "x Indian Creek\r\n  x Rock Canyon \r\nMaple Canyon\r\n"
    next_item = queue.next_pending()
    assert next_item is not None
    assert next_item.text == "Maple Canyon"


def test_mark_failed_counts_as_processed_and_keeps_reason(tmp_path):
    queue = _queue(tmp_path, "Rock Canyon\nAmerican Fork")
    item = queue.next_pending()

    queue.mark_failed(item, "ResearchTimeoutError: timed\nout")

    lines = queue.path.read_text(encoding="utf-8").split("\n")
    assert lines[0] == "x [failed] Rock Canyon # ResearchTimeoutError: timed out"
    assert lines[1] == "American Fork"
    failed = queue.items()[0]
    assert failed.done and failed.failed
    assert failed.text == "Rock Canyon"
    assert failed.annotation == "ResearchTimeoutError: timed out"
    assert queue.next_pending().text == "American Fork"


def test_mark_done_is_noop_when_item_was_edited_away(tmp_path):
    queue = _queue(tmp_path, "Rock Canyon\n")
    item = queue.next_pending()
    queue.path.write_text("x Rock Canyon\n", encoding="utf-8")

    assert queue.mark_done(item) is False
    assert queue.path.read_text(encoding="utf-8") == "x Rock Canyon\n"


def test_mark_done_finds_item_after_lines_move(tmp_path):
    queue = _queue(tmp_path, "Rock Canyon\nAmerican Fork\n")
    item = WorkItem(text="American Fork", line_number=1)
    queue.path.write_text("New Area\nRock Canyon\nAmerican Fork\n", encoding="utf-8")

    queue.mark_done(item)

    assert queue.path.read_text(encoding="utf-8") == "New Area\nRock Canyon\nx American Fork\n"


def test_missing_queue_file_is_fatal(tmp_path):
    queue = WorkQueue(tmp_path / "missing.txt")
    with pytest.raises(QueueFileMissingError):
        queue.next_pending()


def test_write_failure_leaves_queue_untouched(tmp_path, monkeypatch):
    queue = _queue(tmp_path, "Rock Canyon\nAmerican Fork\n")
    item = queue.next_pending()

    def boom(path, content):
        raise OSError("disk full")

    monkeypatch.setattr(work_queue_module, "atomic_write_text", boom)

    with pytest.raises(QueueError):
        queue.mark_done(item)
    assert queue.path.read_text(encoding="utf-8") == "Rock Canyon\nAmerican Fork\n"

import asyncio
from pathlib import Path

import pytest

from seekchat.client.attachments import (
    attach_files,
    detach_file,
    merge_attachments,
    read_attachments,
)
from seekchat.client.context import ChatContext
from seekchat.errors import NotFoundError, ValidationError
from seekchat.store.schema import Attachment


def _write(tmp_path: Path, name: str, content: str = "x") -> Path:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")
    return path


def test_read_attachments_filters_extensions(tmp_path):
    paths = [
        _write(tmp_path, "a.txt", "alpha"),
        _write(tmp_path, "b.py", "beta"),
        _write(tmp_path, "c.md", "nope"),
        _write(tmp_path, "D.JAVA", "delta"),
    ]

    picked, skipped = read_attachments(paths)

    assert [(a.name, a.content) for a in picked] == [
        ("a.txt", "alpha"),
        ("b.py", "beta"),
        ("D.JAVA", "delta"),
    ]
    assert len(skipped) == 1
    assert "c.md" in skipped[0]


def test_read_attachments_caps_at_ten(tmp_path):
    paths = [_write(tmp_path, f"f{i}.js") for i in range(12)]
    picked, skipped = read_attachments(paths)
    assert len(picked) == 10
    assert len(skipped) == 2


def test_read_attachments_reports_missing_file(tmp_path):
    picked, skipped = read_attachments([tmp_path / "missing.txt"])
    assert picked == []
    assert "missing.txt" in skipped[0]


def test_merge_replaces_same_name_and_keeps_order():
    existing = [Attachment(name="a.txt", content="X"), Attachment(name="b.txt", content="B")]
    merged = merge_attachments(existing, [Attachment(name="a.txt", content="Y")])
    assert [(a.name, a.content) for a in merged] == [("a.txt", "Y"), ("b.txt", "B")]


def test_attach_merges_with_stored_set(backend):
    backend.sessions.save("1", name="n", messages=[])
    backend.attachments.save_all("1", [Attachment(name="a.txt", content="X")])
    ctx = ChatContext(model="m", session_id="1", name="n")

    merged = asyncio.run(
        attach_files(
            backend,
            ctx,
            [Attachment(name="a.txt", content="Y"), Attachment(name="b.py", content="Z")],
        )
    )

    assert [(a.name, a.content) for a in merged] == [("a.txt", "Y"), ("b.py", "Z")]
    assert backend.attachments.load_all("1") == merged
    assert ctx.attachments == merged


def test_detach_file(backend):
    backend.attachments.save_all(
        "1", [Attachment(name="a.txt", content="X"), Attachment(name="b.txt", content="Y")]
    )
    ctx = ChatContext(model="m", session_id="1", name="n")
    ctx.attachments = backend.attachments.load_all("1")

    asyncio.run(detach_file(backend, ctx, "a.txt"))

    assert [a.name for a in ctx.attachments] == ["b.txt"]
    with pytest.raises(NotFoundError):
        asyncio.run(detach_file(backend, ctx, "a.txt"))


def test_attach_requires_session(backend):
    with pytest.raises(ValidationError):
        asyncio.run(attach_files(backend, ChatContext(model="m"), []))

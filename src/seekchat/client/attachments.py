import logging
from pathlib import Path

from seekchat.client.backend import ChatBackend
from seekchat.client.context import ChatContext
from seekchat.config import ATTACHMENT_EXTENSIONS, MAX_ATTACHMENTS_PER_PICK
from seekchat.errors import ValidationError
from seekchat.store.attachments import dedupe_by_name
from seekchat.store.schema import Attachment

logger = logging.getLogger(__name__)


def read_attachments(
    paths: list[str | Path],
    extensions: tuple[str, ...] = ATTACHMENT_EXTENSIONS,
    limit: int = MAX_ATTACHMENTS_PER_PICK,
) -> tuple[list[Attachment], list[str]]:
    """Load picked files as text. Returns (attachments, skipped-with-reason)."""
    picked: list[Attachment] = []
    skipped: list[str] = []
    for raw in paths:
        path = Path(raw)
        if len(picked) >= limit:
            skipped.append(f"{path}: more than {limit} files picked")
            continue
        if path.suffix.lower() not in extensions:
            skipped.append(f"{path}: unsupported file type")
            continue
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            skipped.append(f"{path}: {e}")
            continue
        picked.append(Attachment(name=path.name, content=content))
    return picked, skipped


def merge_attachments(existing: list[Attachment], new: list[Attachment]) -> list[Attachment]:
    return dedupe_by_name(list(existing) + list(new))


async def attach_files(
    backend: ChatBackend, ctx: ChatContext, files: list[Attachment]
) -> list[Attachment]:
    if not ctx.has_session:
        raise ValidationError("no active session")
    current = await backend.load_files(ctx.session_id)
    merged = merge_attachments(current, files)
    await backend.save_files(ctx.session_id, merged)
    ctx.attachments = merged
    logger.info(f"Session {ctx.session_id} now has {len(merged)} attachments")
    return merged


async def detach_file(backend: ChatBackend, ctx: ChatContext, name: str) -> None:
    if not ctx.has_session:
        raise ValidationError("no active session")
    await backend.delete_file(ctx.session_id, name)
    ctx.attachments = [item for item in ctx.attachments if item.name != name]

# procurement/services/file_storage.py
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List

from procurement.core.errors import InvalidInput, StorageFailure
from procurement.models.enums import AttachmentKind

logger = logging.getLogger(__name__)

_DISALLOWED = re.compile(r"[^a-zA-Z0-9_.-]")
_UNDERSCORES = re.compile(r"_+")

_KIND_DIR = {
    AttachmentKind.spec: "specs",
    AttachmentKind.image: "images",
}


def sanitize_filename(filename: str) -> str:
    """
    Keep letters, digits, underscore, dot and hyphen; everything else
    becomes an underscore. Never returns '', '.' or '..'.
    """
    cleaned = (filename or "").replace(" ", "_")
    cleaned = _DISALLOWED.sub("_", cleaned)
    cleaned = _UNDERSCORES.sub("_", cleaned).strip("_")
    if cleaned in ("", ".", ".."):
        return "sanitized_filename"
    return cleaned


@dataclass(frozen=True)
class Attachment:
    filename: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class LocalFileStorage:
    """
    Uploaded bid-item files on local disk:

        <root>/bids/<bid_id>/items/<item_index>/{specs|images}/<filename>

    Paths are partitioned by bid id and item index, so concurrent bids
    never write to the same location.
    """

    def __init__(self, root: Path, max_bytes: int):
        self.root = Path(root)
        self.max_bytes = int(max_bytes)

    def check_size(self, item_index: int, kind: AttachmentKind, attachment: Attachment) -> None:
        if attachment.size > self.max_bytes:
            limit_mb = self.max_bytes // (1024 * 1024)
            label = "Specification sheet" if kind == AttachmentKind.spec else "Item image"
            raise InvalidInput(
                f"{label} for item {item_index + 1} ({attachment.filename}) "
                f"exceeds max size of {limit_mb}MB."
            )

    def store(
        self,
        bid_id: int,
        item_index: int,
        kind: AttachmentKind,
        attachment: Attachment,
    ) -> str:
        self.check_size(item_index, kind, attachment)

        path = (
            self.root
            / "bids"
            / str(bid_id)
            / "items"
            / str(item_index)
            / _KIND_DIR[kind]
            / sanitize_filename(attachment.filename)
        )
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(attachment.data)
        except OSError as exc:
            logger.error(
                "attachment write failed",
                extra={"bid_id": bid_id, "item_index": item_index, "kind": kind.value, "error": str(exc)},
            )
            raise StorageFailure(f"Failed to store {kind.value} file for item {item_index + 1}.") from exc

        return str(path)

    def discard(self, paths: Iterable[str]) -> List[str]:
        """
        Best-effort removal of files written for a request that rolled back.
        Returns the paths that could not be removed (orphans).
        """
        orphans: List[str] = []
        for p in paths:
            try:
                Path(p).unlink(missing_ok=True)
            except OSError as exc:
                orphans.append(p)
                logger.warning(
                    "orphaned upload left on disk; candidate for reconciliation sweep",
                    extra={"path": p, "error": str(exc)},
                )
        return orphans

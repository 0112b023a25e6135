from pathlib import Path

import pytest

from procurement.core.errors import InvalidInput
from procurement.models.enums import AttachmentKind
from procurement.services.file_storage import Attachment, LocalFileStorage, sanitize_filename


@pytest.mark.parametrize(
    "raw,clean",
    [
        ("spec sheet.pdf", "spec_sheet.pdf"),
        ("../../etc/passwd", ".._.._etc_passwd"),
        ("a  b??c.png", "a_b_c.png"),
        ("..", "sanitized_filename"),
        ("", "sanitized_filename"),
    ],
)
def test_sanitize_filename(raw, clean):
    assert sanitize_filename(raw) == clean


def test_store_partitions_by_bid_and_item(tmp_path):
    storage = LocalFileStorage(tmp_path, max_bytes=1024)

    path = storage.store(7, 2, AttachmentKind.image, Attachment("pic.jpg", b"data"))

    assert Path(path) == tmp_path / "bids" / "7" / "items" / "2" / "images" / "pic.jpg"
    assert Path(path).read_bytes() == b"data"


def test_store_rejects_oversized_file(tmp_path):
    storage = LocalFileStorage(tmp_path, max_bytes=4)

    with pytest.raises(InvalidInput) as exc:
        storage.store(1, 0, AttachmentKind.spec, Attachment("big.pdf", b"12345"))

    assert "Specification sheet for item 1" in exc.value.message
    assert not (tmp_path / "bids").exists()


def test_discard_removes_files_and_tolerates_missing(tmp_path):
    storage = LocalFileStorage(tmp_path, max_bytes=1024)
    path = storage.store(1, 0, AttachmentKind.spec, Attachment("a.pdf", b"x"))

    orphans = storage.discard([path, str(tmp_path / "never-written.pdf")])

    assert orphans == []
    assert not Path(path).exists()

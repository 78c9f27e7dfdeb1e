from __future__ import annotations

from datetime import datetime, timezone

import pytest

from errors import ValidationError
from storage import ProofStorage


def test_save_names_file_after_member_and_time(tmp_path):
    storage = ProofStorage(tmp_path / "proofs")
    now = datetime(2025, 1, 1, tzinfo=timezone.utc)

    ref = storage.save("user-1", "Bukti Transfer.PNG", b"png-bytes", now=now)

    assert ref == f"user-1-{int(now.timestamp() * 1000)}.png"
    assert (tmp_path / "proofs" / ref).read_bytes() == b"png-bytes"
    assert storage.path_for(ref) == tmp_path / "proofs" / ref


@pytest.mark.parametrize("filename,content", [("script.exe", b"x"), ("noext", b"x"), ("ok.jpg", b"")])
def test_save_rejects_bad_uploads(tmp_path, filename, content):
    with pytest.raises(ValidationError):
        ProofStorage(tmp_path).save("user-1", filename, content)


def test_manual_markers_have_no_file(tmp_path):
    storage = ProofStorage(tmp_path)
    assert storage.path_for("MANUAL_CASH_ADMIN") is None
    assert storage.path_for(None) is None
    assert storage.path_for("missing.png") is None

from __future__ import annotations

import os
import stat

from get_session import mask_session, save_session_backup


def test_mask_session_hides_the_middle() -> None:
    saved = "1" * 10 + "secret" * 20 + "2" * 10
    masked = mask_session(saved)
    assert masked == "1111111111...2222222222"
    assert "secret" not in masked
    assert mask_session("short") == "*****"


def test_session_backup_is_owner_only(tmp_path) -> None:
    path = tmp_path / ".session-backup"
    save_session_backup("1AbCdEf", str(path))
    assert path.read_text(encoding="utf-8") == "1AbCdEf"
    if os.name == "posix":
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

# tests/test_export.py
import stat

from simplevpn.export import write_config_qr

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


def test_qr_written_private(tmp_path):
    out = write_config_qr("[Interface]\nPrivateKey = X\n", tmp_path / "qr" / "wg0.png")

    assert out.read_bytes().startswith(PNG_MAGIC)
    assert stat.S_IMODE(out.stat().st_mode) == 0o600
    assert stat.S_IMODE(out.parent.stat().st_mode) == 0o700

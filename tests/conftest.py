"""Shared fixtures for the lsn tests."""

import pytest


def make_meta(modified=None, accessed=None, created=None, size=0,
              is_dir=False, is_symlink=False):
    return {
        "modified": modified,
        "accessed": accessed,
        "created": created,
        "size": size,
        "is_dir": is_dir,
        "is_symlink": is_symlink,
    }


@pytest.fixture
def meta():
    """Factory for metadata records."""
    return make_meta


@pytest.fixture
def sequence_dir(tmp_path):
    """Directory with a short numbered run, a plain file and a dotfile."""
    for i, name in enumerate(["frame1.png", "frame2.png", "frame10.png"], start=1):
        (tmp_path / name).write_bytes(b"x" * i)
    (tmp_path / "readme.txt").write_bytes(b"y" * 10)
    (tmp_path / ".hidden").write_text("secret")
    return tmp_path

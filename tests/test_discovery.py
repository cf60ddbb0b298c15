"""Tests for recursive candidate discovery."""

import os
import sys

import pytest

from phashkeep.discovery import IMAGE_EXTENSIONS, find_images


def _touch(path):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"")
    return path


class TestFindImages:
    def test_recurses_and_filters_by_extension(self, tmp_path):
        expected = {
            _touch(tmp_path / "a.jpg"),
            _touch(tmp_path / "sub" / "b.png"),
            _touch(tmp_path / "sub" / "deeper" / "c.jpeg"),
        }
        _touch(tmp_path / "notes.txt")
        _touch(tmp_path / "sub" / "clip.mp4")

        assert set(find_images(tmp_path)) == expected

    def test_extension_match_is_case_insensitive(self, tmp_path):
        upper = _touch(tmp_path / "PHOTO.JPG")
        mixed = _touch(tmp_path / "Scan.PnG")

        assert set(find_images(tmp_path)) == {upper, mixed}

    def test_custom_extensions(self, tmp_path):
        gif = _touch(tmp_path / "anim.gif")
        _touch(tmp_path / "still.png")

        assert find_images(tmp_path, extensions=[".GIF"]) == [gif]

    def test_default_allow_list(self):
        assert {".jpg", ".jpeg", ".png"} <= IMAGE_EXTENSIONS
        assert ".avif" not in IMAGE_EXTENSIONS

    def test_empty_and_missing_roots(self, tmp_path):
        assert find_images(tmp_path) == []
        assert find_images(tmp_path / "missing") == []

    def test_excluded_directory_is_not_descended(self, tmp_path):
        keep = _touch(tmp_path / "a.png")
        _touch(tmp_path / "output" / "b.png")

        assert find_images(tmp_path, exclude=[tmp_path / "output"]) == [keep]

    @pytest.mark.skipif(
        sys.platform == "win32" or (hasattr(os, "geteuid") and os.geteuid() == 0),
        reason="permission bits are not enforced",
    )
    def test_unreadable_directory_is_skipped(self, tmp_path):
        keep = _touch(tmp_path / "a.png")
        locked = tmp_path / "locked"
        _touch(locked / "b.png")
        locked.chmod(0)
        try:
            assert find_images(tmp_path) == [keep]
        finally:
            locked.chmod(0o755)

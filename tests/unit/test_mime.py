import pytest

from filebridge.server.mime import DEFAULT_MIME_TYPE, guess_mime_type


@pytest.mark.parametrize("filename,expected", [
    ("photo.png", "image/png"),
    ("PHOTO.JPG", "image/jpeg"),
    ("scan.tiff", "image/tiff"),
    ("clip.mp4", "video/mp4"),
    ("logo.svg", "image/svg+xml"),
    ("archive.tar.gz", DEFAULT_MIME_TYPE),
    ("README", DEFAULT_MIME_TYPE),
])
def test_guess_mime_type(filename, expected):
    assert guess_mime_type(filename) == expected

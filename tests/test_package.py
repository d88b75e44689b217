"""
Tests for storyflow package metadata
"""

import storyflow


def test_package_exposes_version_and_copyright():
    assert storyflow.__version__
    assert storyflow.__copyright__.startswith("Copyright")
    assert storyflow.__all__ == ["__version__"]

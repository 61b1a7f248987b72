"""Tests for package metadata lookup."""

from importlib import metadata

from grafana_otel.manifest import Manifest, read_manifest


class TestReadManifest:
    """Test reading name and version of installed distributions."""

    def test_installed_distribution(self):
        """Test metadata of an installed distribution."""
        manifest = read_manifest("pydantic")
        assert manifest.name == "pydantic"
        assert manifest.version == metadata.version("pydantic")

    def test_missing_distribution(self):
        """Test that an unknown distribution yields an empty manifest."""
        assert read_manifest("definitely-not-installed-dist") == Manifest()

    def test_no_distribution(self):
        """Test that no distribution name yields an empty manifest."""
        manifest = read_manifest(None)
        assert manifest.name is None
        assert manifest.version is None

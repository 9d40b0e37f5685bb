"""Tests for manifest extraction."""

import io
import logging
import random
import tarfile

import pytest

from artifact_registry.exceptions import ExtractionError, ManifestParseError
from artifact_registry.services.manifest import ManifestExtractor, normalize_entry_name


@pytest.fixture
def extractor():
    return ManifestExtractor("package.toml")


class TestNormalizeEntryName:
    """Tests for archive entry name normalization."""

    def test_strips_leading_dot_slash(self):
        assert normalize_entry_name("./package.toml") == "package.toml"

    def test_strips_leading_slash(self):
        assert normalize_entry_name("/package.toml") == "package.toml"

    def test_keeps_nested_paths(self):
        assert normalize_entry_name("./proto/../package.toml") == "package.toml"
        assert normalize_entry_name("proto/package.toml") == "proto/package.toml"


class TestExtract:
    """Tests for ManifestExtractor.extract."""

    def test_extracts_package_table(self, extractor, make_artifact, acme_manifest):
        artifact = make_artifact({"package.toml": acme_manifest, "proto/a.proto": "syntax"})

        result = extractor.extract(artifact)

        assert result == {
            "name": "acme-widgets",
            "description": "d",
            "homepage": "https://acme.example",
            "repository_url": "https://github.com/acme/widgets",
            "keywords": ["a", "b"],
        }

    def test_finds_manifest_with_dot_prefix(self, extractor, make_artifact, acme_manifest):
        artifact = make_artifact({"./package.toml": acme_manifest})

        assert extractor.extract(artifact)["name"] == "acme-widgets"

    def test_ignores_manifest_in_subdirectory(self, extractor, make_artifact, acme_manifest):
        artifact = make_artifact({"vendor/package.toml": acme_manifest})

        with pytest.raises(ExtractionError, match="not found"):
            extractor.extract(artifact)

    def test_configured_manifest_path(self, make_artifact):
        extractor = ManifestExtractor("buff.toml")
        artifact = make_artifact({"buff.toml": '[package]\nname = "x"\n'})

        assert extractor.extract(artifact) == {"name": "x"}

    def test_missing_manifest(self, extractor, make_artifact):
        artifact = make_artifact({"README.md": "hello"})

        with pytest.raises(ExtractionError, match="not found"):
            extractor.extract(artifact)

    def test_duplicate_manifest(self, extractor, make_artifact, acme_manifest):
        artifact = make_artifact({"package.toml": acme_manifest, "./package.toml": acme_manifest})

        with pytest.raises(ExtractionError, match="appears 2 times"):
            extractor.extract(artifact)

    def test_manifest_that_is_a_directory(self, extractor):
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w:gz") as archive:
            info = tarfile.TarInfo(name="package.toml")
            info.type = tarfile.DIRTYPE
            archive.addfile(info)

        with pytest.raises(ExtractionError, match="not a regular file"):
            extractor.extract(buffer.getvalue())

    def test_not_gzip(self, extractor):
        with pytest.raises(ExtractionError, match="not a gzip-compressed tarball"):
            extractor.extract(b"definitely not an archive")

    def test_empty_artifact(self, extractor):
        with pytest.raises(ExtractionError):
            extractor.extract(b"")

    def test_truncated_archive(self, extractor, make_artifact):
        artifact = make_artifact({"README.md": "x" * 4096, "package.toml": "[package]\n"})

        with pytest.raises(ExtractionError):
            extractor.extract(artifact[:40])


class TestManifestSizeLimit:
    """Tests for the decompressed manifest size cap."""

    def test_highly_compressible_manifest_is_rejected(self, extractor, make_artifact):
        manifest = '[package]\nname = "x"\n' + "#" * (8 * 1024 * 1024)
        artifact = make_artifact({"package.toml": manifest})

        # Tiny on the wire, huge once decompressed
        assert len(artifact) < extractor.max_manifest_bytes

        with pytest.raises(ExtractionError, match="exceeds"):
            extractor.extract(artifact)

    def test_manifest_at_the_limit(self, make_artifact, acme_manifest):
        limit = len(acme_manifest.encode())
        artifact = make_artifact({"package.toml": acme_manifest})

        assert ManifestExtractor("package.toml", max_manifest_bytes=limit).extract(artifact)
        with pytest.raises(ExtractionError, match=f"exceeds {limit - 1} bytes"):
            ManifestExtractor("package.toml", max_manifest_bytes=limit - 1).extract(artifact)


class TestReadErrors:
    """Tests for tolerating damaged archives."""

    @pytest.fixture
    def damaged_artifact(self, make_artifact, acme_manifest):
        """Manifest first, then an entry whose data is cut off mid-stream."""
        payload = random.Random(0).randbytes(64 * 1024)
        artifact = make_artifact({"package.toml": acme_manifest, "blob.bin": payload})
        return artifact[:-1024]

    def test_single_read_error_is_tolerated(self, extractor, damaged_artifact, caplog):
        with caplog.at_level(logging.WARNING):
            result = extractor.extract(damaged_artifact)

        assert result["name"] == "acme-widgets"
        assert "Tolerated archive read error" in caplog.text

    def test_too_many_read_errors(self, damaged_artifact):
        extractor = ManifestExtractor("package.toml", max_read_errors=0)

        with pytest.raises(ExtractionError, match="Too many archive read errors") as exc_info:
            extractor.extract(damaged_artifact)

        assert exc_info.value.__cause__ is not None

    def test_manifest_behind_damage_is_not_found(
        self, extractor, make_artifact, acme_manifest
    ):
        payload = random.Random(1).randbytes(64 * 1024)
        artifact = make_artifact({"blob.bin": payload, "package.toml": acme_manifest})

        with pytest.raises(ExtractionError, match="not found") as exc_info:
            extractor.extract(artifact[: len(artifact) // 2])

        assert exc_info.value.__cause__ is not None


class TestDecode:
    """Tests for manifest TOML decoding."""

    def test_invalid_toml(self, extractor, make_artifact):
        artifact = make_artifact({"package.toml": "[package\nname = "})

        with pytest.raises(ManifestParseError, match="not valid TOML"):
            extractor.extract(artifact)

    def test_invalid_utf8(self, extractor, make_artifact):
        artifact = make_artifact({"package.toml": b"[package]\nname = \"\xff\xfe\"\n"})

        with pytest.raises(ManifestParseError, match="UTF-8"):
            extractor.extract(artifact)

    def test_missing_package_table(self, extractor, make_artifact):
        artifact = make_artifact({"package.toml": '[project]\nname = "x"\n'})

        with pytest.raises(ManifestParseError, match=r"\[package\]"):
            extractor.extract(artifact)

    def test_package_must_be_a_table(self, extractor):
        with pytest.raises(ManifestParseError):
            extractor.decode(b'package = "acme"\n')

    def test_decodes_package_table(self, extractor):
        result = extractor.decode(b'[package]\nname = "x"\nkeywords = []\n')

        assert result == {"name": "x", "keywords": []}

"""Manifest extraction from uploaded artifacts."""

import io
import logging
import posixpath
import tarfile
import tomllib
import zlib
from typing import Any

from artifact_registry.exceptions import ExtractionError, ManifestParseError

logger = logging.getLogger(__name__)

# Errors tarfile and gzip can raise while reading a damaged archive
ARCHIVE_READ_ERRORS = (tarfile.TarError, OSError, EOFError, zlib.error)

# Upper bound on the decompressed manifest; the archive size says nothing about it
DEFAULT_MAX_MANIFEST_BYTES = 64 * 1024


def normalize_entry_name(name: str) -> str:
    """Normalize an archive entry name so ``./a/b`` and ``a/b`` compare equal."""
    normalized = posixpath.normpath(name.replace("\\", "/")).lstrip("/")
    return "" if normalized == "." else normalized


class ManifestExtractor:
    """Reads the package manifest out of a gzip-compressed tarball.

    Everything happens in memory: the archive is never written to disk.
    """

    def __init__(
        self,
        manifest_path: str,
        max_read_errors: int = 1,
        max_manifest_bytes: int = DEFAULT_MAX_MANIFEST_BYTES,
    ):
        self.manifest_path = normalize_entry_name(manifest_path)
        self.max_read_errors = max_read_errors
        self.max_manifest_bytes = max_manifest_bytes

    def extract(self, artifact: bytes) -> dict[str, Any]:
        """Return the manifest's ``[package]`` table.

        Raises:
            ExtractionError: the archive is unreadable or the manifest is missing
            ManifestParseError: the manifest is not valid TOML
        """
        raw = self.read_manifest(artifact)
        return self.decode(raw)

    def read_manifest(self, artifact: bytes) -> bytes:
        """Scan the archive for exactly one manifest entry and return its bytes."""
        try:
            archive = tarfile.open(fileobj=io.BytesIO(artifact), mode="r:gz")
        except ARCHIVE_READ_ERRORS as e:
            raise ExtractionError(f"Artifact is not a gzip-compressed tarball: {e}") from e

        matches: list[bytes] = []
        read_errors: list[Exception] = []

        with archive:
            members = iter(archive)
            while True:
                try:
                    member = next(members)
                except StopIteration:
                    break
                except ARCHIVE_READ_ERRORS as e:
                    # The member stream is unusable past this point
                    read_errors.append(e)
                    break

                if normalize_entry_name(member.name) != self.manifest_path:
                    continue

                if not member.isfile():
                    raise ExtractionError(f"Manifest '{self.manifest_path}' is not a regular file")

                if member.size > self.max_manifest_bytes:
                    raise ExtractionError(self._too_large_message())

                try:
                    fileobj = archive.extractfile(member)
                    if fileobj is None:
                        raise ExtractionError(f"Manifest '{self.manifest_path}' has no content")
                    raw = fileobj.read(self.max_manifest_bytes + 1)
                except ARCHIVE_READ_ERRORS as e:
                    read_errors.append(e)
                else:
                    if len(raw) > self.max_manifest_bytes:
                        raise ExtractionError(self._too_large_message())
                    matches.append(raw)

                if len(read_errors) > self.max_read_errors:
                    break

        if len(read_errors) > self.max_read_errors:
            raise ExtractionError(
                f"Too many archive read errors ({len(read_errors)})"
            ) from read_errors[-1]

        if read_errors:
            logger.warning(f"Tolerated archive read error: {read_errors[0]}")

        if not matches:
            error = ExtractionError(f"Manifest '{self.manifest_path}' not found in artifact")
            if read_errors:
                raise error from read_errors[-1]
            raise error

        if len(matches) > 1:
            raise ExtractionError(
                f"Manifest '{self.manifest_path}' appears {len(matches)} times in artifact"
            )

        return matches[0]

    def _too_large_message(self) -> str:
        return f"Manifest '{self.manifest_path}' exceeds {self.max_manifest_bytes} bytes"

    def decode(self, raw: bytes) -> dict[str, Any]:
        """Decode manifest TOML and return its ``[package]`` table."""
        try:
            document = tomllib.loads(raw.decode("utf-8"))
        except UnicodeDecodeError as e:
            raise ManifestParseError(f"Manifest is not valid UTF-8: {e}") from e
        except tomllib.TOMLDecodeError as e:
            raise ManifestParseError(f"Manifest is not valid TOML: {e}") from e

        package = document.get("package")
        if not isinstance(package, dict):
            raise ManifestParseError("Manifest is missing a [package] table")

        return dict(package)

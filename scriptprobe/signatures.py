"""
Signature database for JavaScript library detection.

Reads the Retire.js `jsrepository.json` layout: per library, filename/URI
and file-content regexes (with a `§§version§§` placeholder) plus the
library's known vulnerable version ranges. The database is loaded once at
startup and shared read-only by every scan.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Any

import structlog

from scriptprobe.aliases import AliasTable
from scriptprobe.errors import SignatureDatabaseError
from scriptprobe.models import SignatureSpec, SignatureVulnerability
from scriptprobe.versions import version_in_range

logger = structlog.get_logger(__name__)

VERSION_PLACEHOLDER = "§§version§§"
VERSION_CAPTURE = r"[0-9][0-9.a-z_\-]+"

BUNDLED_DATABASE = "jsrepository.json"


@dataclass(frozen=True, slots=True)
class CompiledSignature:
    """Signature spec with its patterns compiled."""

    spec: SignatureSpec
    filename: tuple[re.Pattern[str], ...]
    content: tuple[re.Pattern[str], ...]

    @property
    def name(self) -> str:
        return self.spec.library_name


def expand_pattern(pattern: str) -> str:
    """Replace the version placeholder with a version-capturing expression."""
    return pattern.replace(VERSION_PLACEHOLDER, VERSION_CAPTURE)


def _compile_all(library: str, patterns: Iterable[str]) -> tuple[re.Pattern[str], ...]:
    compiled: list[re.Pattern[str]] = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(expand_pattern(pattern), re.IGNORECASE))
        except re.error as e:
            logger.warning("signature_pattern_skipped", library=library, pattern=pattern, error=str(e))
    return tuple(compiled)


def _parse_identifiers(raw: Any) -> tuple[list[str], str]:
    """Flatten a Retire.js identifiers object into (ids, summary)."""
    identifiers: list[str] = []
    summary = ""
    if isinstance(raw, Mapping):
        for key, value in raw.items():
            if key == "summary":
                summary = str(value or "")
            elif isinstance(value, list):
                identifiers.extend(str(v) for v in value if v)
            elif value:
                identifiers.append(str(value))
    elif isinstance(raw, list):
        identifiers.extend(str(v) for v in raw if v)
    return identifiers, summary


def _parse_vulnerability(raw: Mapping[str, Any]) -> SignatureVulnerability:
    identifiers, summary = _parse_identifiers(raw.get("identifiers"))
    info = raw.get("info") or []
    return SignatureVulnerability(
        identifiers=identifiers,
        info_links=[str(link) for link in info] if isinstance(info, list) else [str(info)],
        version_below=str(raw["below"]) if raw.get("below") else None,
        version_at_or_above=str(raw["atOrAbove"]) if raw.get("atOrAbove") else None,
        severity=str(raw["severity"]) if raw.get("severity") else None,
        summary=summary,
    )


def parse_repository(data: Mapping[str, Any]) -> list[SignatureSpec]:
    """
    Convert a Retire.js repository mapping into signature specs.

    Args:
        data: Decoded jsrepository.json

    Returns:
        One spec per library entry that carries detection patterns
    """
    specs: list[SignatureSpec] = []
    for library_name, entry in data.items():
        if not isinstance(entry, Mapping):
            logger.debug("signature_entry_skipped", library=library_name)
            continue
        extractors = entry.get("extractors") or {}
        filename_patterns = [
            *extractors.get("filename", []),
            *extractors.get("uri", []),
        ]
        content_patterns = list(extractors.get("filecontent", []))
        if not filename_patterns and not content_patterns:
            continue
        vulnerabilities = [
            _parse_vulnerability(v)
            for v in entry.get("vulnerabilities", [])
            if isinstance(v, Mapping)
        ]
        specs.append(
            SignatureSpec(
                library_name=library_name,
                filename_patterns=filename_patterns,
                content_patterns=content_patterns,
                known_vulnerabilities=vulnerabilities,
            )
        )
    return specs


class SignatureDatabase:
    """
    Read-only collection of compiled library signatures.

    Iteration order follows the source file, which fixes the order in
    which detection hits are reported.
    """

    def __init__(self, specs: Iterable[SignatureSpec]) -> None:
        self._signatures: tuple[CompiledSignature, ...] = tuple(
            CompiledSignature(
                spec=spec,
                filename=_compile_all(spec.library_name, spec.filename_patterns),
                content=_compile_all(spec.library_name, spec.content_patterns),
            )
            for spec in specs
        )
        self._by_name = {sig.name.lower(): sig.spec for sig in self._signatures}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "SignatureDatabase":
        return cls(parse_repository(data))

    @classmethod
    def load(cls, path: str | Path | None = None) -> "SignatureDatabase":
        """
        Load a database from `path`, or the bundled one when omitted.

        Raises:
            SignatureDatabaseError: If the file is missing or malformed
        """
        try:
            if path is None:
                bundled = resources.files("scriptprobe") / "data" / BUNDLED_DATABASE
                text = bundled.read_text(encoding="utf-8")
                origin = f"bundled:{BUNDLED_DATABASE}"
            else:
                text = Path(path).read_text(encoding="utf-8")
                origin = str(path)
            data = json.loads(text)
        except OSError as e:
            raise SignatureDatabaseError(f"Cannot read signature database: {e}") from e
        except json.JSONDecodeError as e:
            raise SignatureDatabaseError(f"Malformed signature database: {e}") from e

        if not isinstance(data, Mapping):
            raise SignatureDatabaseError("Signature database must be a JSON object")

        database = cls.from_mapping(data)
        logger.info("signature_database_loaded", origin=origin, libraries=len(database))
        return database

    def __iter__(self) -> Iterator[CompiledSignature]:
        return iter(self._signatures)

    def __len__(self) -> int:
        return len(self._signatures)

    def get(self, library_name: str) -> SignatureSpec | None:
        return self._by_name.get(library_name.lower())

    def advisories_for(
        self,
        library_name: str,
        version: str,
        aliases: AliasTable | None = None,
    ) -> list[SignatureVulnerability]:
        """
        Known vulnerabilities whose range contains `version`.

        The library is looked up by name first, then by package identity
        through `aliases`, so "Angular" at 1.7.5 finds the "angularjs" entry.
        """
        spec = self.get(library_name)
        if spec is None and aliases is not None:
            for candidate in self._by_name.values():
                if aliases.same_package(library_name, candidate.library_name, version):
                    spec = candidate
                    break
        if spec is None:
            return []
        return [
            vuln
            for vuln in spec.known_vulnerabilities
            if version_in_range(version, vuln.version_below, vuln.version_at_or_above)
        ]

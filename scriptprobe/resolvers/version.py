"""
Latest-version resolution against the npm registry.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx
import structlog

from scriptprobe.aliases import AliasTable
from scriptprobe.models import ScanConfig, VersionDiff, VersionStatus
from scriptprobe.outcome import FailureKind, Outcome
from scriptprobe.versions import compare_versions, is_concrete, version_diff

logger = structlog.get_logger(__name__)


def registry_path(package: str) -> str:
    """URL path segment for a package, keeping scoped names intact."""
    return quote(package, safe="@/")


def latest_from_metadata(meta: Any) -> str | None:
    """Latest version from a registry `/latest` or full-document response."""
    if not isinstance(meta, dict):
        return None
    version = meta.get("version")
    if not version:
        dist_tags = meta.get("dist-tags")
        if isinstance(dist_tags, dict):
            version = dist_tags.get("latest")
    return str(version) if version else None


class VersionResolver:
    """
    Compares a detected version with the latest published one.

    The display name is mapped to its package identity through the alias
    table before the registry is queried.
    """

    def __init__(
        self,
        config: ScanConfig,
        client: httpx.AsyncClient,
        aliases: AliasTable,
    ) -> None:
        self.config = config
        self.client = client
        self.aliases = aliases

    async def resolve(self, name: str, scanned_version: str) -> Outcome[VersionStatus]:
        """
        Resolve the latest version and compare it with `scanned_version`.

        An "unknown" scanned version still gets the latest version, but no
        outdated verdict.

        Args:
            name: Detected display name
            scanned_version: Detected version or "unknown"

        Returns:
            Outcome with the version status; network and parse failures are
            returned, never raised
        """
        package = self.aliases.package_for(name, scanned_version)
        url = f"{self.config.registry_url}/{registry_path(package)}/latest"

        try:
            response = await self.client.get(url, follow_redirects=True)
            response.raise_for_status()
            meta = response.json()
        except httpx.HTTPError as e:
            logger.debug("registry_request_failed", package=package, error=str(e) or type(e).__name__)
            return Outcome.fail(FailureKind.NETWORK, str(e))
        except ValueError as e:
            logger.debug("registry_response_malformed", package=package, error=str(e))
            return Outcome.fail(FailureKind.PARSE, str(e))

        latest = latest_from_metadata(meta)
        if latest is None:
            logger.debug("registry_version_missing", package=package)
            return Outcome.fail(FailureKind.PARSE, f"no latest version for {package}")

        if not is_concrete(scanned_version):
            return Outcome.ok(VersionStatus(registry_name=package, latest_version=latest))

        return Outcome.ok(
            VersionStatus(
                registry_name=package,
                latest_version=latest,
                is_outdated=compare_versions(scanned_version, latest) < 0,
                version_diff=version_diff(scanned_version, latest),
            )
        )

    def unresolved(self, name: str, scanned_version: str | None = None) -> VersionStatus:
        """Status used when resolution failed."""
        return VersionStatus(
            registry_name=self.aliases.package_for(name, scanned_version),
            latest_version=None,
            is_outdated=None,
            version_diff=VersionDiff.UNKNOWN,
        )

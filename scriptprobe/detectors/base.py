"""
Base detector class defining the shared infrastructure for library detectors.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from scriptprobe.models import UNKNOWN_VERSION, CandidateSource, LibraryCandidate

if TYPE_CHECKING:
    from scriptprobe.models import ScanConfig


class BaseDetector:
    """
    Base class for library detectors.

    Provides logging bound to the detector kind, configuration access,
    and a factory for library candidates. Detectors differ in their
    inputs, so each subclass defines its own `detect` signature.
    """

    detector_name: str = "base"

    def __init__(self, config: "ScanConfig | None" = None) -> None:
        """
        Initialize detector with scan configuration.

        Args:
            config: Scan configuration (optional for purely local detectors)
        """
        self.config = config
        self.logger = structlog.get_logger(__name__).bind(detector=self.detector_name)

    def _create_candidate(
        self,
        name: str,
        source: CandidateSource,
        version: str | None = None,
        locator: str = "runtime",
    ) -> LibraryCandidate:
        """
        Create a LibraryCandidate with the sentinel applied to missing versions.

        Args:
            name: Display name of the library
            source: Detector that produced the evidence
            version: Detected version, if any
            locator: Originating URL, or "runtime"

        Returns:
            Immutable candidate
        """
        return LibraryCandidate(
            name=name,
            version=str(version) if version else UNKNOWN_VERSION,
            source=source,
            locator=locator,
        )

"""
Library detectors for ScriptProbe.

Each detector turns one kind of evidence (script URLs, signature
patterns, runtime globals) into library candidates.
"""

from scriptprobe.detectors.base import BaseDetector
from scriptprobe.detectors.runtime import RuntimeDetector, RuntimeResult
from scriptprobe.detectors.signature import SignatureDetector
from scriptprobe.detectors.static import StaticDetector

__all__ = [
    "BaseDetector",
    "RuntimeDetector",
    "RuntimeResult",
    "SignatureDetector",
    "StaticDetector",
]

"""
Capture package for elementsync.
Handles failure screenshots.
"""

from .screenshot import CaptureResult, FailureScreenshotter

__all__ = [
    "CaptureResult",
    "FailureScreenshotter",
]

"""
Captures: typed user-authored items arranged in parent/child trees.

Models are re-exported here; ``CaptureStore`` lives in
``foundry.core.captures.store``.
"""

from foundry.core.captures.models import (
    Capture,
    CaptureCreate,
    CaptureDeletion,
    CapturePatch,
    CaptureStatus,
    CaptureUpdateResult,
    Priority,
)
from foundry.core.fields.schema import CaptureType

__all__ = [
    "Capture",
    "CaptureCreate",
    "CaptureDeletion",
    "CapturePatch",
    "CaptureStatus",
    "CaptureType",
    "CaptureUpdateResult",
    "Priority",
]

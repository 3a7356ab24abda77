"""
Foundry - per-principal structured record store.

Captures, sprints, workspaces, documents and templates, with the
relationships between them kept consistent.
"""

__version__ = "0.1.0"

# Re-export core models for convenience
from foundry.core.captures.models import Capture, CaptureStatus, Priority
from foundry.core.config.models import FoundryConfig
from foundry.core.fields.schema import CaptureType

__all__ = ["Capture", "CaptureStatus", "CaptureType", "FoundryConfig", "Priority", "__version__"]

"""Service layer: asset directory, submission controller and conversion engine."""

from .directory import AssetDirectory
from .engine import ConversionEngine
from .submission import SubmissionController, SubmissionRequest

__all__ = ["AssetDirectory", "ConversionEngine", "SubmissionController", "SubmissionRequest"]

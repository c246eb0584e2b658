"""Local camera preview (never transmitted)."""

from .preview import CameraPreview

__all__ = ["CameraPreview"]

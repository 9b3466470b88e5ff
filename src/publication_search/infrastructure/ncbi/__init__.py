"""NCBI-backed collaborators."""

from .icite import ICiteCitationMetrics

__all__ = ["ICiteCitationMetrics"]

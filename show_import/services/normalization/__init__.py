"""Text normalization."""
from .text_normalizer import normalize

__all__ = ["normalize"]

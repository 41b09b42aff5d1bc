"""Source chunking."""
from .source_chunker import SourceChunker, reconstruct
from .token_counter import TokenCounter

__all__ = ["SourceChunker", "TokenCounter", "reconstruct"]

from .reader import ScopeReader, ScopeRecord
from .stream import ChunkedScopeStream
from .writer import ScopeWriter

__all__ = ["ChunkedScopeStream", "ScopeReader", "ScopeRecord", "ScopeWriter"]

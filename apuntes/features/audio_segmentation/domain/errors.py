class SegmentationError(RuntimeError):
    """Raised when a recording cannot be split into chunks."""


class DecodeError(SegmentationError):
    """Raised when a blob cannot be loaded or decoded as playable audio."""

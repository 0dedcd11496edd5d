from typing import Optional


class HuffmanError(ValueError):
    """Base class for every failure raised by the Huffman codec.

    Subclasses :class:`ValueError` so callers catching ``ValueError``
    for malformed data keep working.
    """


class InputError(HuffmanError):
    """The input handed to the encoder cannot be compressed."""


class EmptyInputError(InputError):
    """Raised when encoding a zero-length input."""

    def __init__(self, message: str = "Input is empty"):
        super().__init__(message)


class EmptyForestError(InputError):
    """Raised when the tree builder receives no leaves."""

    def __init__(self, message: str = "Cannot build a tree without leaves"):
        super().__init__(message)


class CountOutOfRangeError(InputError):
    """Raised when an occurrence count does not fit the 55-bit record field."""


class FormatError(HuffmanError):
    """The artifact is not a Huffman file or its tree region is corrupted."""


class HeaderMismatchError(FormatError):
    """Raised when the magic header is missing or different."""


class TruncatedTreeError(FormatError):
    """Raised when the tree records end before the tree is complete."""


class TrailingRecordsError(FormatError):
    """Raised when records remain after the tree has been rebuilt."""


class InvalidTreeStructureError(FormatError):
    """Raised when node counts are inconsistent."""


class DataStreamError(HuffmanError):
    """The packed data region is corrupted or truncated.

    :ivar offset: Byte offset within the data region where the problem was
        detected, or ``None`` when it applies to the stream as a whole.
    :type offset: int | None
    """

    def __init__(self, message: str, offset: Optional[int] = None):
        if offset is not None:
            message = f"{message} (data byte {offset})"
        super().__init__(message)
        self.offset = offset


class InvalidPathError(DataStreamError):
    """Raised when a bit asks for a child the current node does not have."""


class InvalidTerminationError(DataStreamError):
    """Raised when trailing padding contains a 1 bit."""


class PrematureTerminationError(DataStreamError):
    """Raised when a symbol is used more often than its count allows."""


class IncompleteDataError(DataStreamError):
    """Raised when the stream ends before every symbol was emitted."""

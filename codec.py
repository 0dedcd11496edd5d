import enum
import logging
from typing import Callable, List, Optional

from bitops import BitReader, BitWriter, bits_to_int
from errors import (
    HeaderMismatchError,
    IncompleteDataError,
    InvalidPathError,
    InvalidTerminationError,
    PrematureTerminationError,
)
from huffman import CodeTable, HuffmanTree, build_tree, count_frequencies
from treecodec import load_tree, serialize_tree

logger = logging.getLogger(__name__)

MAGIC = bytes([0x7B, 0x68, 0x75, 0x7C, 0x6D, 0x7D, 0x66, 0x66])  #: Header
PROGRESS_STEP = 1 << 16  #: Bytes between two progress reports

ProgressCallback = Optional[Callable[[int, int], None]]


class DecoderState(enum.Enum):
    """State of the data-region decoder."""

    ACTIVE = "active"  #: Decoding genuine data
    TERMINATING = "terminating"  #: Only zero padding may follow


def pack_stream(data: bytes, codes: CodeTable,
                on_progress: ProgressCallback = None) -> bytes:
    """Pack the code words of ``data`` into bytes, LSB first.

    :param data: Input symbols in stream order.
    :type data: bytes
    :param codes: Code word of every symbol in ``data``.
    :type codes: Dict[int, Tuple[bool, ...]]
    :param on_progress: Optional ``on_progress(done, total)`` callback.
    :type on_progress: Optional[Callable[[int, int], None]]
    :returns: Packed bit stream, zero-padded to a whole byte.
    :rtype: bytes
    """
    packed = {s: (bits_to_int(bits), len(bits)) for s, bits in codes.items()}

    writer = BitWriter()
    total = len(data)
    for start in range(0, total, PROGRESS_STEP):
        for symbol in data[start:start + PROGRESS_STEP]:
            value, length = packed[symbol]
            writer.write_bits(value, length)
        if on_progress is not None:
            on_progress(min(start + PROGRESS_STEP, total), total)
    return writer.flush()


class StreamDecoder:
    """Walks a validated tree bit by bit to recover the original symbols.

    The data region has no length field. The end of genuine data is found
    once a zero-only path from the root reaches a leaf whose count has been
    used up; from then on only zero bits may follow.

    :ivar tree: Validated tree read from the artifact.
    :type tree: HuffmanTree
    :ivar remaining: Occurrences left to emit, indexed like ``tree.nodes``.
    :type remaining: List[int]
    :ivar state: Current decoder state.
    :type state: DecoderState
    """

    def __init__(self, tree: HuffmanTree):
        self.tree = tree
        self.remaining: List[int] = [node.count for node in tree.nodes]
        self.state = DecoderState.ACTIVE
        self.position = tree.root
        self.left_only = True

    def decode(self, data: bytes,
               on_progress: ProgressCallback = None) -> bytes:
        """Decode the packed data region.

        :param data: Data region of the artifact.
        :type data: bytes
        :param on_progress: Optional ``on_progress(done, total)`` callback
            reporting consumed data bytes.
        :type on_progress: Optional[Callable[[int, int], None]]
        :returns: Decoded bytes.
        :rtype: bytes
        :raises InvalidPathError: If a bit leads to a missing child.
        :raises InvalidTerminationError: If a 1 bit appears in the padding.
        :raises PrematureTerminationError: If padding is detected with more
            than one data byte still unread.
        :raises IncompleteDataError: If some symbol is not fully emitted.
        """
        nodes = self.tree.nodes
        root = self.tree.root
        remaining = self.remaining
        out = bytearray()
        reader = BitReader(data)
        reported = 0

        for bit in reader:
            node = nodes[self.position]
            if bit:
                if self.state is DecoderState.TERMINATING:
                    raise InvalidTerminationError(
                        "Bit 1 in trailing padding", reader.offset
                    )
                child = node.right
                self.left_only = False
            else:
                child = node.left
            if node.is_leaf or child is None:
                raise InvalidPathError(
                    "Wrong path during decoding", reader.offset
                )
            self.position = child

            if nodes[child].is_leaf:
                if remaining[child] > 0:
                    out.append(nodes[child].symbol)
                    remaining[child] -= 1
                    self.state = DecoderState.ACTIVE
                    self.left_only = True
                else:
                    self._enter_padding(reader)
                self.position = root

            if (on_progress is not None
                    and reader.pos - reported >= PROGRESS_STEP):
                reported = reader.pos
                on_progress(reported, len(data))

        unused = sum(remaining[i] for i in self.tree.leaves())
        if unused:
            raise IncompleteDataError(
                f"Data ends with {unused} symbols still expected"
            )
        if on_progress is not None:
            on_progress(len(data), len(data))
        return bytes(out)

    def _enter_padding(self, reader: BitReader):
        """Accept a path to an exhausted leaf as trailing zero padding."""
        if not self.left_only:
            raise InvalidTerminationError(
                "Bit 1 in trailing padding", reader.offset
            )
        if reader.remaining > 1:
            raise PrematureTerminationError(
                "Too many uses of a character", reader.offset
            )
        self.state = DecoderState.TERMINATING


class HuffmanCodec:
    """Static Huffman compressor producing self-describing artifacts.

    Artifact layout:

    - Magic: ``7B 68 75 7C 6D 7D 66 66`` (8 bytes)
    - Tree: pre-order 64-bit little-endian records, then a zero record
    - Data: code words packed LSB first, last byte zero-padded

    Instances hold no state between calls.

    :ivar MAGIC: Artifact header.
    :type MAGIC: bytes
    """

    MAGIC = MAGIC

    def encode(self, data: bytes,
               on_progress: ProgressCallback = None) -> bytes:
        """Compress ``data`` into an artifact.

        :param data: Input bytes to compress.
        :type data: bytes
        :param on_progress: Optional callback ``on_progress(done, total)``
                            reporting input bytes packed so far.
        :type on_progress: Optional[Callable[[int, int], None]]
        :returns: The artifact bytes.
        :rtype: bytes
        :raises EmptyInputError: If ``data`` is empty.
        :raises CountOutOfRangeError: If ``data`` is too long for the format.
        """
        frequencies = count_frequencies(data)
        tree = build_tree(frequencies)
        codes = tree.code_table()
        tree_bytes = serialize_tree(tree)
        payload = pack_stream(data, codes, on_progress=on_progress)
        logger.debug("Tree: %s", tree.to_prefix())
        logger.debug(
            "Encoded %d bytes: %d symbols, %d tree bytes, %d data bytes",
            len(data), len(codes), len(tree_bytes), len(payload),
        )
        return self.MAGIC + tree_bytes + payload

    def decode(self, data: bytes,
               on_progress: ProgressCallback = None) -> bytes:
        """Decompress an artifact produced by :meth:`encode`.

        :param data: Artifact bytes.
        :type data: bytes
        :param on_progress: Optional callback ``on_progress(done, total)``
                            reporting data-region bytes consumed.
        :type on_progress: Optional[Callable[[int, int], None]]
        :returns: The original bytes.
        :rtype: bytes
        :raises HeaderMismatchError: If the magic header is missing or wrong.
        :raises FormatError: If the tree region is truncated or malformed.
        :raises DataStreamError: If the data region is corrupted or truncated.
        """
        if len(data) < len(self.MAGIC):
            raise HeaderMismatchError("Header for Huffman is missing")
        if data[:len(self.MAGIC)] != self.MAGIC:
            raise HeaderMismatchError("Header for Huffman does not match")

        tree, data_offset = load_tree(data, len(self.MAGIC))
        logger.debug("Loaded tree of %d nodes, data region of %d bytes",
                     len(tree), len(data) - data_offset)
        decoder = StreamDecoder(tree)
        return decoder.decode(data[data_offset:], on_progress=on_progress)


def encode(data: bytes, on_progress: ProgressCallback = None) -> bytes:
    """Compress ``data`` with a fresh :class:`HuffmanCodec`."""
    return HuffmanCodec().encode(data, on_progress=on_progress)


def decode(data: bytes, on_progress: ProgressCallback = None) -> bytes:
    """Decompress an artifact with a fresh :class:`HuffmanCodec`."""
    return HuffmanCodec().decode(data, on_progress=on_progress)

from typing import Iterator, Sequence


def bits_to_int(bits: Sequence[bool]) -> int:
    """Turn a bit sequence into an integer whose bit 0 is ``bits[0]``.

    The result can be passed to :meth:`BitWriter.write_bits` together with
    ``len(bits)``.

    :param bits: Bits in stream order (``True`` = 1).
    :type bits: Sequence[bool]
    :returns: The packed value.
    :rtype: int
    """
    value = 0
    for i, bit in enumerate(bits):
        if bit:
            value |= 1 << i
    return value


class BitWriter:
    """Bit-packing writer.

    Bits are packed least-significant-bit first: bit ``i`` of the logical
    stream lands in bit ``i % 8`` of byte ``i // 8``.

    :ivar buffer: Internal byte buffer holding fully written bytes.
    :type buffer: bytearray
    :ivar bit_buffer: Scratch register for accumulating pending bits.
    :type bit_buffer: int
    :ivar bit_count: Number of valid bits currently stored in ``bit_buffer``.
    :type bit_count: int
    """

    def __init__(self):
        """Initialize an empty bit writer.

        :returns: None
        :rtype: None
        """
        self.buffer = bytearray()
        self.bit_buffer = 0
        self.bit_count = 0

    def write_bits(self, value: int, nbits: int):
        """Write the lowest ``nbits`` of ``value``, bit 0 of ``value`` first.

        :param value: Integer whose bits will be written.
        :type value: int
        :param nbits: Number of bits from ``value`` to write.
        :type nbits: int
        :returns: None
        :rtype: None
        """
        if nbits <= 0:
            return
        self.bit_buffer |= (value & ((1 << nbits) - 1)) << self.bit_count
        self.bit_count += nbits
        while self.bit_count >= 8:
            self.buffer.append(self.bit_buffer & 0xFF)
            self.bit_buffer >>= 8
            self.bit_count -= 8

    @property
    def bits_written(self) -> int:
        """Total number of bits written so far, padding excluded."""
        return len(self.buffer) * 8 + self.bit_count

    def flush(self) -> bytes:
        """Flush remaining bits (if any) and return the full byte buffer.

        A partial final byte keeps its bits in the low positions; the unused
        high positions are zero.

        :returns: The accumulated bytes written so far.
        :rtype: bytes
        """
        if self.bit_count > 0:
            self.buffer.append(self.bit_buffer & 0xFF)
            self.bit_buffer = 0
            self.bit_count = 0
        return bytes(self.buffer)


class BitReader:
    """Bit reader over a bytes-like object, least-significant-bit first.

    :ivar data: Input data to read bits from.
    :type data: bytes
    :ivar pos: Number of bytes loaded so far (index of the next byte).
    :type pos: int
    :ivar bit_buffer: Scratch register holding the current source byte.
    :type bit_buffer: int
    :ivar bit_count: Number of unread bits remaining in ``bit_buffer`` (0-8).
    :type bit_count: int
    """

    def __init__(self, data: bytes):
        """Create a bit reader for the given input ``data``.

        :param data: Source data to read from.
        :type data: bytes
        :returns: None
        :rtype: None
        """
        self.data = data
        self.pos = 0
        self.bit_buffer = 0
        self.bit_count = 0

    @property
    def remaining(self) -> int:
        """Number of source bytes not yet loaded."""
        return len(self.data) - self.pos

    @property
    def offset(self) -> int:
        """Index of the byte the last returned bit came from."""
        return self.pos - 1

    def read_bit(self) -> int:
        """Read a single bit.

        :returns: ``0`` or ``1``.
        :rtype: int
        :raises EOFError: If no bits are left.
        """
        if self.bit_count == 0:
            if self.pos >= len(self.data):
                raise EOFError("Unexpected end of data")
            self.bit_buffer = self.data[self.pos]
            self.pos += 1
            self.bit_count = 8
        bit = self.bit_buffer & 1
        self.bit_buffer >>= 1
        self.bit_count -= 1
        return bit

    def __iter__(self) -> Iterator[int]:
        """Yield every remaining bit until the data is exhausted."""
        while self.bit_count > 0 or self.pos < len(self.data):
            yield self.read_bit()

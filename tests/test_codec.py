import random

import pytest

import codec
from codec import MAGIC, HuffmanCodec, StreamDecoder, pack_stream
from errors import (
    EmptyInputError,
    HeaderMismatchError,
    HuffmanError,
    IncompleteDataError,
    InvalidPathError,
    InvalidTerminationError,
    InvalidTreeStructureError,
    PrematureTerminationError,
    TrailingRecordsError,
    TruncatedTreeError,
)
from huffman import build_tree, count_frequencies
from treecodec import RECORD_SIZE, serialize_tree

BDAACB_ARTIFACT = MAGIC + bytes.fromhex(
    "0c00000000000000"
    "0400000000000000"
    "0300000000000043"
    "0300000000000044"
    "0800000000000000"
    "0500000000000041"
    "0500000000000042"
    "0000000000000000"
    "5b0c"
)


def _artifact_with_payload(text: bytes, payload: bytes) -> bytes:
    tree = build_tree(count_frequencies(text))
    return MAGIC + serialize_tree(tree) + payload


def test_encode_known_artifact():
    assert codec.encode(b"BDAACB") == BDAACB_ARTIFACT
    assert codec.decode(BDAACB_ARTIFACT) == b"BDAACB"


def test_padding_is_ambiguous_without_counts():
    codes = build_tree(count_frequencies(b"BDAACB")).code_table()
    # C is the all-zero code word, so two extra C's vanish into the padding
    assert pack_stream(b"BDAACB", codes) == b"\x5b\x0c"
    assert pack_stream(b"BDAACBCC", codes) == b"\x5b\x0c"

    longer = codec.encode(b"BDAACBCC")
    assert codec.decode(longer) == b"BDAACBCC"
    assert codec.decode(BDAACB_ARTIFACT) == b"BDAACB"


@pytest.mark.parametrize(
    "data",
    [
        b"ab",
        b"BDAACBAA",
        b"\x00\x00\x00\x01",
        bytes(range(256)),
        bytes(range(256)) * 3 + b"\xff" * 100,
    ],
)
def test_roundtrip(data):
    assert codec.decode(codec.encode(data)) == data


def test_roundtrip_text_with_progress(sample_text, progress_recorder):
    h = HuffmanCodec()
    on_prog, calls = progress_recorder
    comp = h.encode(sample_text, on_progress=on_prog)
    assert len(comp) > 0
    assert calls[-1] == (len(sample_text), len(sample_text))

    calls.clear()
    assert h.decode(comp, on_progress=on_prog) == sample_text
    data_len = len(comp) - len(MAGIC) - len(serialize_tree(
        build_tree(count_frequencies(sample_text))))
    assert calls[-1] == (data_len, data_len)


def test_roundtrip_random_inputs():
    rng = random.Random(1234)
    h = HuffmanCodec()
    for _ in range(30):
        size = rng.randint(2, 600)
        alphabet = rng.sample(range(256), rng.randint(2, 40))
        data = bytes(rng.choice(alphabet) for _ in range(size))
        if len(set(data)) < 2:
            continue
        assert h.decode(h.encode(data)) == data


def test_encode_is_deterministic(sample_text):
    assert codec.encode(sample_text) == codec.encode(sample_text)
    assert HuffmanCodec().encode(sample_text) == codec.encode(sample_text)


def test_encode_empty_raises():
    with pytest.raises(EmptyInputError):
        codec.encode(b"")


def test_single_symbol_artifact_is_rejected_on_decode():
    artifact = codec.encode(b"aaaa")
    # one leaf record, the sentinel and no data bits
    assert len(artifact) == len(MAGIC) + 2 * RECORD_SIZE
    with pytest.raises(IncompleteDataError):
        codec.decode(artifact)


def test_decode_short_header_raises():
    with pytest.raises(HeaderMismatchError):
        codec.decode(MAGIC[:7])


def test_decode_wrong_header_raises():
    bad = b"X" + BDAACB_ARTIFACT[1:]
    with pytest.raises(HeaderMismatchError):
        codec.decode(bad)


def test_decode_missing_sentinel_raises(record_bytes):
    artifact = MAGIC + record_bytes([(True, 65, 1)], sentinel=False)
    with pytest.raises(TruncatedTreeError):
        codec.decode(artifact)


def test_decode_empty_tree_raises():
    with pytest.raises(TruncatedTreeError):
        codec.decode(MAGIC + b"\x00" * 8 + b"\x01")


def test_decode_trailing_records_raise(record_bytes):
    artifact = MAGIC + record_bytes([(True, 65, 1), (True, 66, 1)]) + b"\x00"
    with pytest.raises(TrailingRecordsError):
        codec.decode(artifact)


def test_decode_inconsistent_counts_raise(record_bytes):
    artifact = MAGIC + record_bytes(
        [(False, 0, 3), (True, 65, 1), (True, 66, 1)]
    ) + b"\x02"
    with pytest.raises(InvalidTreeStructureError):
        codec.decode(artifact)


def test_decode_bits_for_single_leaf_tree_raise(record_bytes):
    artifact = MAGIC + record_bytes([(True, 65, 1)]) + b"\x00"
    with pytest.raises(InvalidPathError):
        codec.decode(artifact)


def test_decode_one_bit_in_padding_raises():
    # after BDAACB: 0, 0 reach the exhausted C, then 0, 1
    artifact = _artifact_with_payload(b"BDAACB", b"\x5b\x8c")
    with pytest.raises(InvalidTerminationError):
        codec.decode(artifact)


def test_decode_non_left_path_to_exhausted_leaf_raises():
    # after BDAACB: 0, 1 reach D, whose only occurrence is used up
    artifact = _artifact_with_payload(b"BDAACB", b"\x5b\x2c")
    with pytest.raises(InvalidTerminationError):
        codec.decode(artifact)


def test_decode_padding_too_early_raises():
    artifact = _artifact_with_payload(b"BDAACB", b"\x5b\x0c\x00\x00")
    with pytest.raises(PrematureTerminationError) as exc:
        codec.decode(artifact)
    assert exc.value.offset == 1


def test_decode_accepts_one_extra_zero_byte():
    artifact = _artifact_with_payload(b"BDAACB", b"\x5b\x0c\x00")
    assert codec.decode(artifact) == b"BDAACB"


def test_truncated_data_region_is_incomplete(sample_text):
    for data in (b"BDAACB", sample_text, bytes(range(256))):
        artifact = codec.encode(data)
        with pytest.raises(IncompleteDataError):
            codec.decode(artifact[:-1])


def test_bit_flips_in_tree_region_never_crash(sample_text):
    data = sample_text[:60]
    artifact = codec.encode(data)
    tree_len = len(serialize_tree(build_tree(count_frequencies(data))))
    start = len(MAGIC)
    for byte_index in range(start, start + tree_len):
        for bit in range(8):
            corrupted = bytearray(artifact)
            corrupted[byte_index] ^= 1 << bit
            try:
                out = codec.decode(bytes(corrupted))
            except HuffmanError:
                continue
            assert isinstance(out, bytes)


def test_stream_decoder_keeps_tree_counts():
    tree = build_tree(count_frequencies(b"BDAACB"))
    decoder = StreamDecoder(tree)
    assert decoder.decode(b"\x5b\x0c") == b"BDAACB"
    assert tree[tree.root].count == 6
    assert all(decoder.remaining[i] == 0 for i in tree.leaves())


def test_codec_is_reusable_after_errors():
    h = HuffmanCodec()
    with pytest.raises(HuffmanError):
        h.decode(b"nope")
    assert h.decode(h.encode(b"hello world")) == b"hello world"

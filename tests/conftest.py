import sys
from pathlib import Path
import importlib
import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


@pytest.fixture()
def m():
    """Lazily import the main module for tests to avoid module-level import."""
    return importlib.import_module("main")


@pytest.fixture()
def no_progress(monkeypatch, m):
    """Capture progress rendering in main module during tests."""
    calls = []

    def _stub(line: str):
        calls.append(line)

    monkeypatch.setattr(m, "_print_progress", _stub)
    return calls


@pytest.fixture()
def progress_recorder():
    """Provide a reusable progress callback and its call log."""
    calls = []

    def cb(done, total):
        calls.append((done, total))

    return cb, calls


@pytest.fixture()
def sample_text():
    """A short English text with a skewed symbol distribution."""
    return b"The quick brown fox jumps over the lazy dog. " * 5


@pytest.fixture()
def record_bytes():
    """Build a record region from ``(is_leaf, symbol, count)`` triples.

    The sentinel is appended unless ``sentinel=False`` is passed.
    """
    from huffman import HuffmanNode
    from treecodec import RECORD, SENTINEL, pack_record

    def build(nodes, sentinel=True):
        out = b"".join(
            RECORD.pack(pack_record(HuffmanNode(leaf, symbol=s, count=c)))
            for leaf, s, c in nodes
        )
        return out + (SENTINEL if sentinel else b"")

    return build

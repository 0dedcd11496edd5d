import argparse
import logging
import os
import sys
import tempfile
from typing import List, Optional

from codec import HuffmanCodec
from errors import HuffmanError

logger = logging.getLogger("huffcodec")

ENCODED_SUFFIX = ".huff"  #: Default suffix of encoded output
DECODED_SUFFIX = ".txt"  #: Default suffix of decoded output


def get_parser():
    """Create and configure the CLI argument parser.

    :returns: Configured argument parser.
    :rtype: argparse.ArgumentParser
    """
    parser = argparse.ArgumentParser(
        description="Static Huffman compressor for single files"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log debug details"
    )
    subparsers = parser.add_subparsers(
        title="subcommands", dest="cmd", required=True
    )

    encode = subparsers.add_parser(
        "encode", aliases=["e"], help="Compress a file"
    )
    encode.add_argument("source", help="File to compress")
    encode.add_argument(
        "-o",
        "--output",
        default=None,
        help=f"Output file path (default: <source>{ENCODED_SUFFIX})",
    )
    encode.add_argument(
        "-P",
        "--no-progress",
        action="store_true",
        help="Hide progress output",
    )

    decode = subparsers.add_parser(
        "decode", aliases=["d"], help="Decompress a file"
    )
    decode.add_argument("source", help="File to decompress")
    decode.add_argument(
        "-o",
        "--output",
        default=None,
        help=f"Output file path (default: <source>{DECODED_SUFFIX})",
    )
    decode.add_argument(
        "-P",
        "--no-progress",
        action="store_true",
        help="Hide progress output",
    )

    return parser


def default_output_path(source: str, encoding: bool) -> str:
    """Derive the output path used when none is given.

    :param source: Input file path.
    :type source: str
    :param encoding: ``True`` for encode, ``False`` for decode.
    :type encoding: bool
    :returns: ``<source>.huff`` when encoding, ``<source>.txt`` otherwise.
    :rtype: str
    """
    return source + (ENCODED_SUFFIX if encoding else DECODED_SUFFIX)


def _print_progress(line: str) -> None:
    """Render and flush a single progress line in-place (carriage return).

    :param line: The textual progress line to display.
    :type line: str
    :returns: None
    :rtype: None
    """
    sys.stdout.write("\r" + line)
    sys.stdout.flush()


def _fmt_pct(done: int, total: int) -> str:
    """Format a completion percentage string like ``12.34%``.

    :param done: Units completed.
    :type done: int
    :param total: Total units to complete.
    :type total: int
    :returns: Percentage.
    :rtype: str
    """
    if total <= 0:
        return "0%"
    pct = 100.0 * (done / float(total))
    return f"{pct:6.2f}%"


def _fmt_bytes(n: int) -> str:
    """Format a byte count into a human-readable string.

    :param n: Number of bytes.
    :type n: int
    :returns: Human-readable string.
    :rtype: str
    """
    for unit in ['', 'Ki', 'Mi', 'Gi', 'Ti']:
        if abs(n) < 1024:
            return f"{n:.2f} {unit}B"
        n /= 1024
    return f"{n:.2f} PiB"


class Progress:
    """Callable progress reporter redrawing one line per percent step.

    :ivar label: Action label (e.g. "Encoding" or "Decoding").
    :type label: str
    :ivar path: File path shown next to the percentage.
    :type path: str
    """

    def __init__(self, label: str, path: str) -> None:
        self.label = label
        self.path = path
        self._last_reported = -1

    def __call__(self, done: int, total: int) -> None:
        """Update the progress display.

        :param done: Units processed so far.
        :type done: int
        :param total: Total units.
        :type total: int
        :returns: None
        :rtype: None
        """
        if total <= 0:
            return
        percent_bucket = int((done * 100) / total)
        if percent_bucket == self._last_reported:
            return
        self._last_reported = percent_bucket
        _print_progress(f"{self.label} {self.path}  {_fmt_pct(done, total)}")


def _write_atomic(path: str, data: bytes) -> None:
    """Write ``data`` to ``path`` through a temporary sibling file.

    The target only appears once the data is fully written; the temporary
    file is removed on failure.

    :param path: Destination file path.
    :type path: str
    :param data: Bytes to write.
    :type data: bytes
    :returns: None
    :rtype: None
    """
    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp_path = tempfile.mkstemp(
        prefix=".", suffix=".part", dir=directory
    )
    try:
        with os.fdopen(fd, "wb") as out:
            out.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        os.unlink(tmp_path)
        raise


def _run(label: str, source: str, output: str, hide_progress: bool,
         encoding: bool) -> int:
    """Read ``source``, run the codec and write ``output``.

    :returns: Number of bytes written.
    :rtype: int
    :raises FileNotFoundError: If ``source`` does not exist.
    :raises HuffmanError: If the codec rejects the input.
    """
    with open(source, "rb") as f:
        data = f.read()

    codec = HuffmanCodec()
    on_prog = None if hide_progress else Progress(label, source)
    try:
        if encoding:
            result = codec.encode(data, on_progress=on_prog)
        else:
            result = codec.decode(data, on_progress=on_prog)
    finally:
        if on_prog is not None:
            sys.stdout.write("\n")
            sys.stdout.flush()

    _write_atomic(output, result)
    logger.info(
        "%s %s (%s) -> %s (%s)",
        label, source, _fmt_bytes(len(data)), output, _fmt_bytes(len(result)),
    )
    return len(result)


def encode_file(source: str, output: Optional[str] = None,
                hide_progress: bool = False) -> int:
    """Compress ``source`` into ``output`` (default ``<source>.huff``).

    :param source: File to compress.
    :type source: str
    :param output: Destination path.
    :type output: str | None
    :param hide_progress: Whether to suppress progress output.
    :type hide_progress: bool
    :returns: Size of the written artifact.
    :rtype: int
    """
    if output is None:
        output = default_output_path(source, encoding=True)
    return _run("Encoding", source, output, hide_progress, encoding=True)


def decode_file(source: str, output: Optional[str] = None,
                hide_progress: bool = False) -> int:
    """Decompress ``source`` into ``output`` (default ``<source>.txt``).

    :param source: Artifact to decompress.
    :type source: str
    :param output: Destination path.
    :type output: str | None
    :param hide_progress: Whether to suppress progress output.
    :type hide_progress: bool
    :returns: Size of the written output.
    :rtype: int
    """
    if output is None:
        output = default_output_path(source, encoding=False)
    return _run("Decoding", source, output, hide_progress, encoding=False)


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point for the CLI tool.

    :param argv: Arguments to parse instead of ``sys.argv``.
    :type argv: List[str] | None
    :returns: Process exit status.
    :rtype: int
    """
    parser = get_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    if args.cmd in ["encode", "e"]:
        action, verb = encode_file, "Encode"
    else:
        action, verb = decode_file, "Decode"

    try:
        action(args.source, args.output, args.no_progress)
    except FileNotFoundError:
        print(f"[!] Input file not found: {args.source}", file=sys.stderr)
        return 1
    except HuffmanError as e:
        print(f"[!] {verb} failed: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Binary record format of a Huffman tree.

Every node is one little-endian 64-bit record, written in pre-order:

- bit 0: leaf flag
- bits 1-55: the node's count (low 55 bits)
- bits 56-63: the symbol (leaves only, zero otherwise)

The record region ends with one all-zero sentinel record.
"""
import struct
from typing import List, Optional, Tuple

from errors import (
    InvalidTreeStructureError,
    TrailingRecordsError,
    TruncatedTreeError,
)
from huffman import MAX_COUNT, HuffmanNode, HuffmanTree

RECORD = struct.Struct("<Q")
RECORD_SIZE = RECORD.size  #: Bytes per serialized node
SENTINEL = bytes(RECORD_SIZE)  #: End-of-tree marker


def pack_record(node: HuffmanNode) -> int:
    """Encode one node as a 64-bit record value.

    :param node: Node to encode.
    :type node: HuffmanNode
    :returns: The record value.
    :rtype: int
    """
    value = (node.count & MAX_COUNT) << 1
    if node.is_leaf:
        value |= 1 | ((node.symbol & 0xFF) << 56)
    return value


def unpack_record(value: int) -> HuffmanNode:
    """Decode a 64-bit record value into a detached node (no children).

    :param value: Record value as read from the artifact.
    :type value: int
    :returns: Node carrying the leaf flag, count and symbol of the record.
    :rtype: HuffmanNode
    """
    is_leaf = bool(value & 1)
    count = (value >> 1) & MAX_COUNT
    symbol = (value >> 56) & 0xFF if is_leaf else 0
    return HuffmanNode(is_leaf, symbol=symbol, count=count)


def serialize_tree(tree: HuffmanTree) -> bytes:
    """Write the tree as pre-order records followed by the sentinel.

    :param tree: Tree to serialize.
    :type tree: HuffmanTree
    :returns: Record bytes, sentinel included.
    :rtype: bytes
    """
    out = bytearray()
    for index in tree.preorder():
        out += RECORD.pack(pack_record(tree[index]))
    out += SENTINEL
    return bytes(out)


def read_records(data: bytes, offset: int = 0) -> Tuple[List[int], int]:
    """Read non-zero records from ``data`` up to and including the sentinel.

    :param data: Buffer holding the record region.
    :type data: bytes
    :param offset: Position of the first record.
    :type offset: int
    :returns: The record values and the offset just past the sentinel.
    :rtype: Tuple[List[int], int]
    :raises TruncatedTreeError: If the buffer ends before a sentinel.
    """
    records = []
    while offset + RECORD_SIZE <= len(data):
        (value,) = RECORD.unpack_from(data, offset)
        offset += RECORD_SIZE
        if value == 0:
            return records, offset
        records.append(value)
    raise TruncatedTreeError(
        f"Tree region ends without a sentinel after {len(records)} records"
    )


def deserialize_tree(records: List[int]) -> HuffmanTree:
    """Rebuild a tree from pre-order record values.

    An internal record takes the next two subtrees as its left and right
    children. Node ``i`` of the returned arena is built from record ``i``.

    :param records: Record values, sentinel excluded.
    :type records: List[int]
    :returns: The rebuilt (not yet validated) tree.
    :rtype: HuffmanTree
    :raises TruncatedTreeError: If records run out before the tree is complete.
    :raises TrailingRecordsError: If records remain once the tree is complete.
    """
    tree = HuffmanTree()
    # open child slots as (parent index, is_right); None parent is the root
    slots: List[Tuple[Optional[int], bool]] = [(None, False)]
    for position, value in enumerate(records):
        if not slots:
            raise TrailingRecordsError(
                f"{len(records) - position} records follow a complete tree"
            )
        parent, is_right = slots.pop()
        tree.nodes.append(unpack_record(value))
        index = len(tree.nodes) - 1
        if parent is None:
            tree.root = index
        elif is_right:
            tree[parent].right = index
        else:
            tree[parent].left = index
        if not tree[index].is_leaf:
            slots.append((index, True))
            slots.append((index, False))
    if slots:
        raise TruncatedTreeError(
            f"Tree records end with {len(slots)} subtrees missing"
        )
    return tree


def validate_tree(tree: HuffmanTree):
    """Check the count invariants of a rebuilt tree.

    Every leaf must have a positive count and every internal node must have
    two children whose counts add up to its own.

    :param tree: Tree to check.
    :type tree: HuffmanTree
    :returns: None
    :rtype: None
    :raises InvalidTreeStructureError: If any node breaks an invariant.
    """
    if tree.root is None:
        raise InvalidTreeStructureError("Tree has no nodes")
    for index in tree.preorder():
        node = tree[index]
        if node.is_leaf:
            if node.count <= 0:
                raise InvalidTreeStructureError(
                    f"Leaf for symbol {node.symbol} has count 0"
                )
            continue
        if node.left is None or node.right is None:
            raise InvalidTreeStructureError(
                f"Internal node {index} is missing a child"
            )
        expected = tree[node.left].count + tree[node.right].count
        if node.count != expected:
            raise InvalidTreeStructureError(
                f"Internal node {index} has count {node.count}, "
                f"children sum to {expected}"
            )


def load_tree(data: bytes, offset: int = 0) -> Tuple[HuffmanTree, int]:
    """Read, rebuild and validate the tree stored at ``offset``.

    :param data: Artifact bytes.
    :type data: bytes
    :param offset: Position of the first record.
    :type offset: int
    :returns: The validated tree and the offset of the data region.
    :rtype: Tuple[HuffmanTree, int]
    """
    records, data_offset = read_records(data, offset)
    tree = deserialize_tree(records)
    validate_tree(tree)
    return tree, data_offset

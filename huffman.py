import heapq
import logging
from collections import Counter
from typing import Dict, Iterator, List, Optional, Tuple

from errors import CountOutOfRangeError, EmptyForestError, EmptyInputError

logger = logging.getLogger(__name__)

ALPHABET_SIZE = 256  #: One symbol per byte value
COUNT_BITS = 55  #: Width of the count field in a serialized record
MAX_COUNT = (1 << COUNT_BITS) - 1  #: Largest count a record can hold

CodeTable = Dict[int, Tuple[bool, ...]]


class HuffmanNode:
    """Node of a Huffman tree stored in a :class:`HuffmanTree` arena.

    Children are referenced by their index in the arena, never by object.

    :ivar is_leaf: ``True`` for leaves, ``False`` for internal nodes.
    :type is_leaf: bool
    :ivar symbol: Byte value of a leaf; ``0`` for internal nodes.
    :type symbol: int
    :ivar count: Occurrence count of a leaf, or the summed count of an
        internal node's subtree.
    :type count: int
    :ivar left: Arena index of the left child, if any.
    :type left: int | None
    :ivar right: Arena index of the right child, if any.
    :type right: int | None
    """

    __slots__ = ("is_leaf", "symbol", "count", "left", "right")

    def __init__(self, is_leaf: bool, symbol: int = 0, count: int = 0,
                 left: Optional[int] = None, right: Optional[int] = None):
        self.is_leaf = is_leaf
        self.symbol = symbol
        self.count = count
        self.left = left
        self.right = right

    def __repr__(self):
        if self.is_leaf:
            return f"Leaf({self.symbol}, {self.count})"
        return f"Internal({self.count}, {self.left}, {self.right})"


class HuffmanTree:
    """Arena of :class:`HuffmanNode` objects with a designated root.

    :ivar nodes: All nodes of the tree, addressed by index.
    :type nodes: List[HuffmanNode]
    :ivar root: Index of the root node, ``None`` while the arena is empty.
    :type root: int | None
    """

    def __init__(self):
        self.nodes: List[HuffmanNode] = []
        self.root: Optional[int] = None

    def __len__(self) -> int:
        return len(self.nodes)

    def __getitem__(self, index: int) -> HuffmanNode:
        return self.nodes[index]

    def add_leaf(self, symbol: int, count: int) -> int:
        """Append a leaf to the arena.

        :param symbol: Byte value of the leaf.
        :type symbol: int
        :param count: Occurrence count of ``symbol``.
        :type count: int
        :returns: Arena index of the new leaf.
        :rtype: int
        """
        self.nodes.append(HuffmanNode(True, symbol=symbol, count=count))
        return len(self.nodes) - 1

    def add_internal(self, left: Optional[int], right: Optional[int],
                     count: Optional[int] = None) -> int:
        """Append an internal node to the arena.

        :param left: Arena index of the left child.
        :type left: int | None
        :param right: Arena index of the right child.
        :type right: int | None
        :param count: Stored count; defaults to the sum of both children.
        :type count: int | None
        :returns: Arena index of the new node.
        :rtype: int
        """
        if count is None:
            count = self.nodes[left].count + self.nodes[right].count
        self.nodes.append(HuffmanNode(False, count=count,
                                      left=left, right=right))
        return len(self.nodes) - 1

    def preorder(self) -> Iterator[int]:
        """Yield node indices node-then-left-then-right, starting at root."""
        if self.root is None:
            return
        stack = [self.root]
        while stack:
            index = stack.pop()
            yield index
            node = self.nodes[index]
            if not node.is_leaf:
                if node.right is not None:
                    stack.append(node.right)
                if node.left is not None:
                    stack.append(node.left)

    def leaves(self) -> List[int]:
        """Return the arena indices of all leaves reachable from the root."""
        return [i for i in self.preorder() if self.nodes[i].is_leaf]

    def find_path(self, symbol: int) -> Optional[Tuple[bool, ...]]:
        """Depth-first search, left before right, for the leaf of ``symbol``.

        :param symbol: Byte value to look for.
        :type symbol: int
        :returns: Root-to-leaf path (``False`` = left, ``True`` = right), or
            ``None`` if the symbol is not in the tree.
        :rtype: Tuple[bool, ...] | None
        """
        if self.root is None:
            return None
        stack: List[Tuple[int, Tuple[bool, ...]]] = [(self.root, ())]
        while stack:
            index, path = stack.pop()
            node = self.nodes[index]
            if node.is_leaf:
                if node.symbol == symbol:
                    return path
                continue
            if node.right is not None:
                stack.append((node.right, path + (True,)))
            if node.left is not None:
                stack.append((node.left, path + (False,)))
        return None

    def code_table(self) -> CodeTable:
        """Build the code word of every symbol present in the tree.

        A tree whose root is a leaf yields an empty code word.

        :returns: Mapping from symbol to its root-to-leaf path.
        :rtype: Dict[int, Tuple[bool, ...]]
        """
        table: CodeTable = {}
        for symbol in range(ALPHABET_SIZE):
            path = self.find_path(symbol)
            if path is not None:
                table[symbol] = path
        return table

    def to_prefix(self) -> str:
        """Render the tree in prefix notation for debugging.

        Leaves appear as ``*<symbol>:<count>``, internal nodes as their count
        followed by both subtrees.
        """
        parts = []
        for index in self.preorder():
            node = self.nodes[index]
            if node.is_leaf:
                parts.append(f"*{node.symbol}:{node.count}")
            else:
                parts.append(str(node.count))
        return " ".join(parts)


def count_frequencies(data: bytes) -> Dict[int, int]:
    """Count the occurrences of every byte value in ``data``.

    :param data: Whole input to be compressed.
    :type data: bytes
    :returns: Mapping from symbol to count, for symbols that occur.
    :rtype: Dict[int, int]
    :raises EmptyInputError: If ``data`` is empty.
    """
    if not data:
        raise EmptyInputError()
    return dict(Counter(data))


def sorted_leaves(frequencies: Dict[int, int]) -> List[Tuple[int, int]]:
    """Order ``(symbol, count)`` pairs by count, then by symbol value.

    Symbols with a zero count are dropped.
    """
    pairs = [(s, c) for s, c in frequencies.items() if c > 0]
    pairs.sort(key=lambda pair: (pair[1], pair[0]))
    return pairs


def build_tree(frequencies: Dict[int, int]) -> HuffmanTree:
    """Build a deterministic Huffman tree from a frequency table.

    Nodes are merged smallest first using the key ``(count, rank)``: leaves
    are ranked by their ``(count, symbol)`` order and every merged node gets
    a rank above all leaves, increasing in creation order. On equal counts a
    leaf is therefore always taken before a merged subtree. The first node
    popped becomes the left child.

    :param frequencies: Mapping from symbol to occurrence count.
    :type frequencies: Dict[int, int]
    :returns: The built tree.
    :rtype: HuffmanTree
    :raises EmptyForestError: If no symbol has a positive count.
    :raises CountOutOfRangeError: If the total count exceeds 55 bits.
    """
    leaves = sorted_leaves(frequencies)
    if not leaves:
        raise EmptyForestError()

    total = sum(count for _, count in leaves)
    if total > MAX_COUNT:
        raise CountOutOfRangeError(
            f"Input of {total} bytes exceeds the {COUNT_BITS}-bit count field"
        )

    tree = HuffmanTree()
    heap = []
    for rank, (symbol, count) in enumerate(leaves):
        heap.append((count, rank, tree.add_leaf(symbol, count)))
    # already in (count, rank) order, so it is a valid heap

    rank = len(heap)
    while len(heap) > 1:
        left_count, _, left = heapq.heappop(heap)
        right_count, _, right = heapq.heappop(heap)
        merged = tree.add_internal(left, right, left_count + right_count)
        heapq.heappush(heap, (left_count + right_count, rank, merged))
        rank += 1

    tree.root = heap[0][2]
    logger.debug("Built tree with %d symbols and %d nodes",
                 len(leaves), len(tree))
    return tree

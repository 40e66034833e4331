from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Iterator

from .errors import AlreadyExists, InvalidArgument, InvalidState, NotFound

_NEWICK_PUNCTUATION = set(",():;'[]")


@dataclass
class TreeNode:
    name: str
    length: float | None = None
    parent: str | None = None
    children: list[str] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return not self.children


class PhyloTree:
    """Genome phylogeny stored as an arena of nodes keyed by genome name.

    The arena doubles as the name index, so topology and lookup can't
    disagree. Nodes are only ever added through ``add_root`` / ``add_leaf``.
    """

    def __init__(self) -> None:
        self._nodes: dict[str, TreeNode] = {}
        self._root: str | None = None

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    @property
    def empty(self) -> bool:
        return self._root is None

    def _node(self, name: str) -> TreeNode:
        node = self._nodes.get(name)
        if node is None:
            raise NotFound(f"node {name} not found")
        return node

    def _check_new_name(self, name: str) -> None:
        check_genome_name(name)
        if name in self._nodes:
            raise AlreadyExists(f"node {name} already exists")

    def add_root(self, name: str, branch_length: float = 0.0) -> TreeNode:
        """Make ``name`` the new root; an existing root becomes its only child."""
        self._check_new_name(name)
        node = TreeNode(name=name)
        if self._root is not None:
            old_root = self._nodes[self._root]
            old_root.parent = name
            old_root.length = float(branch_length)
            node.children.append(old_root.name)
        self._nodes[name] = node
        self._root = name
        return node

    def add_leaf(self, name: str, parent_name: str, branch_length: float) -> TreeNode:
        if not name or not parent_name:
            raise InvalidArgument("name can't be empty")
        self._check_new_name(name)
        parent = self._nodes.get(parent_name)
        if parent is None:
            raise NotFound(f"parent {parent_name} not found in tree")
        node = TreeNode(name=name, length=float(branch_length), parent=parent_name)
        parent.children.append(name)
        self._nodes[name] = node
        return node

    def root_name(self) -> str:
        if self._root is None:
            raise InvalidState("Can't get root name of empty tree")
        return self._root

    def parent_name(self, name: str) -> str:
        return self._node(name).parent or ""

    def branch_length(self, parent_name: str, child_name: str) -> float:
        node = self._node(child_name)
        if node.parent is None or node.parent != parent_name:
            raise NotFound(f"edge {parent_name}--{child_name} not found")
        return 0.0 if node.length is None else node.length

    def child_names(self, name: str) -> list[str]:
        return list(self._node(name).children)

    def leaf_names_below(self, name: str) -> list[str]:
        # The starting node is never reported, even when it is itself a leaf.
        self._node(name)
        leaves: list[str] = []
        queue: deque[str] = deque([name])
        while queue:
            current = queue.popleft()
            node = self._nodes[current]
            if node.is_leaf and current != name:
                leaves.append(current)
            queue.extend(node.children)
        return leaves

    def iter_preorder(self, start: str | None = None) -> Iterator[TreeNode]:
        if start is None:
            if self._root is None:
                return
            start = self._root
        stack = [self._node(start)]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(self._nodes[child] for child in reversed(node.children))

    def subtree_names(self, name: str) -> list[str]:
        return [node.name for node in self.iter_preorder(name)]

    def to_newick(self) -> str:
        if self._root is None:
            return ""
        return _format_subtree(self, self._root) + ";"

    @classmethod
    def from_newick(cls, newick: str) -> "PhyloTree":
        tree = cls()
        text = newick.strip()
        if not text:
            return tree
        root = parse_newick(text)
        _index_preorder(tree, root)
        tree._root = root.name
        return tree


def check_genome_name(name: str) -> None:
    if not name:
        raise InvalidArgument("name can't be empty")
    if "/" in name or name in (".", ".."):
        raise InvalidArgument(f"illegal genome name: {name!r}")


def _index_preorder(tree: PhyloTree, root: "_ParsedNode") -> None:
    stack: list[tuple[_ParsedNode, str | None]] = [(root, None)]
    while stack:
        parsed, parent = stack.pop()
        check_genome_name(parsed.name)
        if parsed.name in tree._nodes:
            raise ValueError(f"Duplicate node label in Newick tree: {parsed.name}")
        tree._nodes[parsed.name] = TreeNode(
            name=parsed.name,
            length=parsed.length,
            parent=parent,
            children=[child.name for child in parsed.children],
        )
        stack.extend((child, parsed.name) for child in reversed(parsed.children))


def quote_label(label: str) -> str:
    if any(ch in _NEWICK_PUNCTUATION or ch.isspace() for ch in label):
        return "'" + label.replace("'", "''") + "'"
    return label


def format_branch_length(length: float) -> str:
    return repr(float(length))


def _format_subtree(tree: PhyloTree, name: str) -> str:
    # Stack items are ("node", name) to expand or ("text", s) to emit.
    parts: list[str] = []
    stack: list[tuple[str, str]] = [("node", name)]
    while stack:
        kind, value = stack.pop()
        if kind == "text":
            parts.append(value)
            continue
        node = tree._nodes[value]
        label = quote_label(node.name)
        if node.length is not None:
            label += ":" + format_branch_length(node.length)
        if not node.children:
            parts.append(label)
            continue
        stack.append(("text", ")" + label))
        for i in reversed(range(len(node.children))):
            stack.append(("node", node.children[i]))
            if i > 0:
                stack.append(("text", ","))
        stack.append(("text", "("))
    return "".join(parts)


@dataclass
class _ParsedNode:
    name: str
    length: float | None
    children: list["_ParsedNode"]


def parse_newick(newick: str) -> _ParsedNode:
    """Parse a Newick string in which every node, internal or leaf, is labelled.

    Nesting is tracked on an explicit stack, so tree depth is not limited by
    the interpreter's recursion limit.
    """
    text = newick.strip()
    if not text:
        raise ValueError("Newick string is empty.")
    if text.endswith(";"):
        text = text[:-1]
    if not text:
        raise ValueError("Newick string is invalid.")

    def _skip_ws(pos: int) -> int:
        while pos < len(text) and text[pos].isspace():
            pos += 1
        return pos

    def _read_name(pos: int) -> tuple[str | None, int]:
        pos = _skip_ws(pos)
        if pos < len(text) and text[pos] == "'":
            pos += 1
            chars: list[str] = []
            while True:
                if pos >= len(text):
                    raise ValueError("Unterminated quoted label in Newick string.")
                if text[pos] == "'":
                    if pos + 1 < len(text) and text[pos + 1] == "'":
                        chars.append("'")
                        pos += 2
                        continue
                    pos += 1
                    break
                chars.append(text[pos])
                pos += 1
            return "".join(chars), pos
        start = pos
        while pos < len(text) and text[pos] not in ",():;":
            pos += 1
        token = text[start:pos].strip()
        return (token if token else None), pos

    def _read_length(pos: int) -> tuple[float | None, int]:
        pos = _skip_ws(pos)
        if pos >= len(text) or text[pos] != ":":
            return None, pos
        pos += 1
        pos = _skip_ws(pos)
        start = pos
        while pos < len(text) and text[pos] not in ",()":
            pos += 1
        raw = text[start:pos].strip()
        if not raw:
            raise ValueError("Missing branch length after ':'.")
        try:
            value = float(raw)
        except ValueError as exc:
            raise ValueError(f"Invalid branch length: {raw}") from exc
        return value, pos

    def _read_node(pos: int, children: list[_ParsedNode]) -> tuple[_ParsedNode, int]:
        name, pos = _read_name(pos)
        if not name:
            raise ValueError("Every node of a genome tree needs a name.")
        length, pos = _read_length(pos)
        return _ParsedNode(name=name, length=length, children=children), pos

    # One list of already-parsed children per currently open '('.
    open_nodes: list[list[_ParsedNode]] = []
    root: _ParsedNode | None = None
    pos = 0
    while root is None:
        pos = _skip_ws(pos)
        if pos >= len(text):
            raise ValueError("Unexpected end of Newick string.")
        if text[pos] == "(":
            open_nodes.append([])
            pos += 1
            continue

        node, pos = _read_node(pos, [])
        while True:
            if not open_nodes:
                root = node
                break
            open_nodes[-1].append(node)
            pos = _skip_ws(pos)
            if pos >= len(text):
                raise ValueError("Unterminated internal node in Newick string.")
            if text[pos] == ",":
                pos += 1
                break
            if text[pos] == ")":
                node, pos = _read_node(pos + 1, open_nodes.pop())
                continue
            raise ValueError(f"Unexpected token '{text[pos]}' in Newick string.")

    idx = _skip_ws(pos)
    if idx != len(text):
        raise ValueError(f"Unexpected trailing content in Newick: {text[idx:]}")
    return root

"""Copy-on-write editing of allocation trees.

Every helper returns a new root and leaves its input untouched. Only the
nodes on the path from the root to the edited node are rebuilt; all other
subtrees are shared with the input tree.

Invalid requests (unknown ids, moving the root, moving a node into its own
subtree) are not errors: the input root is returned as-is, so callers can
detect "nothing happened" with an identity check (``new is old``). Each such
no-op is logged at DEBUG level.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from enum import Enum
from typing import Callable, Iterator, List, Optional, Tuple

from allocation.node import AllocationNode
from allocation.rule import AllocationRule, Percentage
from common.ids import IdFactory, new_id

logger = logging.getLogger(__name__)

DEFAULT_NEW_NODE_RULE: AllocationRule = Percentage(10.0)


class DropPosition(Enum):
    """Where a moved subtree lands relative to the target node."""

    INSIDE = "inside"
    BEFORE = "before"
    AFTER = "after"


# --- queries -----------------------------------------------------------------


def iter_nodes(root: AllocationNode) -> Iterator[AllocationNode]:
    """Yield every node of the tree in pre-order."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def find_node(root: AllocationNode, node_id: str) -> Optional[AllocationNode]:
    for node in iter_nodes(root):
        if node.id == node_id:
            return node
    return None


def find_parent(root: AllocationNode, node_id: str) -> Optional[AllocationNode]:
    for node in iter_nodes(root):
        if any(c.id == node_id for c in node.children):
            return node
    return None


def is_descendant(node: AllocationNode, target_id: str) -> bool:
    """True if ``target_id`` is ``node`` itself or anywhere below it."""
    return find_node(node, target_id) is not None


def count_nodes(root: AllocationNode) -> int:
    return sum(1 for _ in iter_nodes(root))


def count_leaves(root: AllocationNode) -> int:
    return sum(1 for n in iter_nodes(root) if n.is_leaf)


# --- structural edits --------------------------------------------------------


def _rebuild(
    node: AllocationNode,
    target_id: str,
    mutate: Callable[[AllocationNode], AllocationNode],
) -> Optional[AllocationNode]:
    if node.id == target_id:
        return mutate(node)
    for index, child in enumerate(node.children):
        updated = _rebuild(child, target_id, mutate)
        if updated is not None:
            children = node.children[:index] + (updated,) + node.children[index + 1:]
            return replace(node, children=children)
    return None


def update_node(
    root: AllocationNode,
    target_id: str,
    mutate: Callable[[AllocationNode], AllocationNode],
) -> AllocationNode:
    """Replace one node with ``mutate(node)``.

    Args:
        root: Tree root.
        target_id: Id of the node to replace.
        mutate: Receives the current node, returns its replacement.

    Returns:
        New root, or ``root`` itself when ``target_id`` is not in the tree.
    """
    updated = _rebuild(root, target_id, mutate)
    if updated is None:
        logger.debug("update_node: %s not found, tree unchanged", target_id)
        return root
    return updated


def _prune(node: AllocationNode, target_id: str) -> Optional[AllocationNode]:
    for index, child in enumerate(node.children):
        if child.id == target_id:
            return replace(node, children=node.children[:index] + node.children[index + 1:])
        pruned = _prune(child, target_id)
        if pruned is not None:
            return replace(node, children=node.children[:index] + (pruned,) + node.children[index + 1:])
    return None


def remove_node(root: AllocationNode, target_id: str) -> AllocationNode:
    """Remove the subtree rooted at ``target_id``. The root cannot be removed."""
    if target_id == root.id:
        logger.debug("remove_node: refusing to remove the root %s", target_id)
        return root
    pruned = _prune(root, target_id)
    if pruned is None:
        logger.debug("remove_node: %s not found, tree unchanged", target_id)
        return root
    return pruned


def move_node(
    root: AllocationNode,
    source_id: str,
    target_id: str,
    position: DropPosition | str,
) -> AllocationNode:
    """Relocate the subtree at ``source_id`` relative to ``target_id``.

    ``inside`` appends the subtree to the target's children; ``before`` and
    ``after`` insert it next to the target among the target's siblings. The
    root has no siblings, so ``before``/``after`` on the root act as
    ``inside``.

    Returns:
        New root, or ``root`` itself when the source is the root, equals the
        target, is missing, the target is missing, or the target lies inside
        the source's subtree.
    """
    position = DropPosition(position)

    if source_id == root.id:
        logger.debug("move_node: the root cannot be moved")
        return root
    if source_id == target_id:
        logger.debug("move_node: source and target are both %s", source_id)
        return root
    source = find_node(root, source_id)
    if source is None:
        logger.debug("move_node: source %s not found", source_id)
        return root
    if is_descendant(source, target_id):
        logger.debug("move_node: %s is inside %s, move would create a cycle", target_id, source_id)
        return root
    if find_node(root, target_id) is None:
        logger.debug("move_node: target %s not found", target_id)
        return root

    pruned = remove_node(root, source_id)

    if position is DropPosition.INSIDE or target_id == root.id:
        return update_node(pruned, target_id, lambda n: replace(n, children=n.children + (source,)))

    parent = find_parent(pruned, target_id)
    offset = 0 if position is DropPosition.BEFORE else 1

    def insert(node: AllocationNode) -> AllocationNode:
        children = list(node.children)
        index = [c.id for c in children].index(target_id) + offset
        children.insert(index, source)
        return replace(node, children=tuple(children))

    return update_node(pruned, parent.id, insert)


def clone_subtree(
    node: AllocationNode,
    id_factory: IdFactory = new_id,
) -> Tuple[AllocationNode, List[str]]:
    """Deep-copy a subtree, giving every node a fresh id.

    Returns:
        Tuple of (clone, new ids). Ids are listed children-first, the
        clone's own id last.
    """
    ids: List[str] = []
    children = []
    for child in node.children:
        cloned, child_ids = clone_subtree(child, id_factory)
        children.append(cloned)
        ids.extend(child_ids)
    clone_id = id_factory()
    ids.append(clone_id)
    return replace(node, id=clone_id, children=tuple(children)), ids


# --- editing conveniences ----------------------------------------------------


def add_child(
    root: AllocationNode,
    parent_id: str,
    name: str,
    rule: AllocationRule = DEFAULT_NEW_NODE_RULE,
    id_factory: IdFactory = new_id,
) -> Tuple[AllocationNode, Optional[str]]:
    """Append a new leaf under ``parent_id``.

    Returns:
        Tuple of (new root, id of the new node). The id is None and the
        root unchanged when the parent does not exist.
    """
    if find_node(root, parent_id) is None:
        logger.debug("add_child: parent %s not found", parent_id)
        return root, None
    child = AllocationNode(id=id_factory(), name=name, rule=rule)
    new_root = update_node(root, parent_id, lambda n: replace(n, children=n.children + (child,)))
    return new_root, child.id


def paste_subtree(
    root: AllocationNode,
    parent_id: str,
    subtree: AllocationNode,
    id_factory: IdFactory = new_id,
) -> Tuple[AllocationNode, List[str]]:
    """Append a fresh-id copy of ``subtree`` under ``parent_id``.

    Returns:
        Tuple of (new root, ids minted for the copy); no ids when the parent
        does not exist.
    """
    if find_node(root, parent_id) is None:
        logger.debug("paste_subtree: parent %s not found", parent_id)
        return root, []
    clone, ids = clone_subtree(subtree, id_factory)
    new_root = update_node(root, parent_id, lambda n: replace(n, children=n.children + (clone,)))
    return new_root, ids


def rename_node(root: AllocationNode, node_id: str, name: str) -> AllocationNode:
    # The root stays unnamed; its name only prefixes paths in reports.
    if node_id == root.id:
        logger.debug("rename_node: the root cannot be renamed")
        return root
    return update_node(root, node_id, lambda n: replace(n, name=name))


def set_rule(root: AllocationNode, node_id: str, rule: AllocationRule) -> AllocationNode:
    return update_node(root, node_id, lambda n: replace(n, rule=rule))

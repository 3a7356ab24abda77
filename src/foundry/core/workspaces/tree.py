"""
Folder tree shape checks.

A folder tree is a flat list of nodes pointing at their parent by id. A
valid tree has unique node ids, every parent id names a node in the same
list, and following parents from any node reaches a root.
"""

from foundry.core.errors import ValidationError
from foundry.core.workspaces.models import FolderNode


def folder_cycles(nodes: list[FolderNode]) -> list[str]:
    """
    Ids of nodes whose parent chain never reaches a root.

    Missing parents end a chain (they are reported by ``validate_folder_tree``
    separately), so only genuine loops are returned.
    """
    parents = {node.id: node.parent_id for node in nodes}
    cyclic: list[str] = []
    for node in nodes:
        current: str | None = node.id
        steps = 0
        while current is not None and current in parents:
            current = parents[current]
            steps += 1
            if steps > len(parents):
                cyclic.append(node.id)
                break
    return cyclic


def descendants(nodes: list[FolderNode], node_id: str) -> set[str]:
    """Every node below ``node_id`` (not including it)."""
    children: dict[str | None, list[str]] = {}
    for node in nodes:
        children.setdefault(node.parent_id, []).append(node.id)

    found: set[str] = set()
    pending = list(children.get(node_id, []))
    while pending:
        current = pending.pop()
        if current in found:
            continue
        found.add(current)
        pending.extend(children.get(current, []))
    return found


def validate_folder_tree(nodes: list[FolderNode]) -> list[FolderNode]:
    """
    Check a whole folder tree.

    Returns:
        The nodes, unchanged

    Raises:
        ValidationError: On duplicate ids, unknown parents, or cycles
    """
    seen: set[str] = set()
    for node in nodes:
        if node.id in seen:
            raise ValidationError(f"Duplicate folder id: {node.id}", folder_id=node.id)
        seen.add(node.id)

    for node in nodes:
        if node.parent_id is None:
            continue
        if node.parent_id == node.id:
            raise ValidationError(f"Folder {node.id} is its own parent", folder_id=node.id)
        if node.parent_id not in seen:
            raise ValidationError(
                f"Folder {node.id} has unknown parent {node.parent_id}", folder_id=node.id
            )

    cyclic = folder_cycles(nodes)
    if cyclic:
        raise ValidationError(
            f"Folder tree contains a cycle through {cyclic[0]}", folder_id=cyclic[0]
        )
    return nodes

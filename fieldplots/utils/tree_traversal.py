"""
Depth-first traversal helpers for generated plot layouts.

Each call returns a fresh generator, so the traversal can be restarted
simply by calling the function again.
"""
from typing import Iterator, Optional

from fieldplots.domain.plot_layout import PlotNodeInstance


def iter_nodes(root: PlotNodeInstance) -> Iterator[PlotNodeInstance]:
    """
    Yield every node of the layout in pre-order (parent before children).

    Args:
        root: Root of a generated layout

    Yields:
        Nodes in the same order as the blueprint defines them
    """
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        # Reverse so the first child is visited first
        stack.extend(reversed(node.children))


def iter_sampling_units(root: PlotNodeInstance) -> Iterator[PlotNodeInstance]:
    """
    Yield the sampling-unit leaves of a layout, depth-first.

    Args:
        root: Root of a generated layout

    Yields:
        SAMPLING_UNIT nodes in layout order
    """
    return (node for node in iter_nodes(root) if node.is_sampling_unit)


def find_node(root: PlotNodeInstance, node_id: str) -> Optional[PlotNodeInstance]:
    """Return the node with ``node_id``, or None if the layout has no such node."""
    return next((node for node in iter_nodes(root) if node.id == node_id), None)

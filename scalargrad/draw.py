"""
Graph export for visualization.

Nodes are drawn as records showing label, data and grad. Every non-leaf gets
an extra plain node for its operation, and data flows left to right from
operand to consumer.
"""

from __future__ import annotations
import logging
import os
from typing import List, Tuple, Union

from graphviz import Digraph

from .engine import Node, topological_sort


logger = logging.getLogger(__name__)

FLOAT_FORMAT = '.4f'
OP_SUFFIX = '_op'
# Characters with structural meaning inside record labels
RECORD_SPECIAL = '{}|<>'


def trace(root: Node) -> Tuple[List[Node], List[Tuple[Node, Node]]]:
    """
    Collect every node and edge reachable from `root`.

    Args:
        root: Root node of the graph.

    Returns:
        (nodes, edges) where nodes is in topological order and edges are
        (operand, consumer) pairs in operand order. An operand used twice by
        the same consumer gives two edges.
    """
    nodes = topological_sort(root)
    edges = [(operand, node) for node in nodes for operand in node.operands]
    return nodes, edges


def _escape_record(text: str) -> str:
    for ch in RECORD_SPECIAL:
        text = text.replace(ch, '\\' + ch)
    return text


def _record_label(node: Node) -> str:
    return (
        f'{{ {_escape_record(node.label)} | data:{node.data:{FLOAT_FORMAT}} '
        f'| grad:{node.grad:{FLOAT_FORMAT}} }}'
    )


def draw_dot(root: Node) -> Digraph:
    """
    Build a graphviz Digraph of the computation graph.

    Args:
        root: Root node of the graph to visualize.

    Returns:
        Digraph with one record per Node, one op node per non-leaf Node and
        edges pointing from operand to consumer.
    """
    dot = Digraph(graph_attr={'rankdir': 'LR'})

    nodes, edges = trace(root)
    for n in nodes:
        dot.node(name=n.uid, label=_record_label(n), shape='record')
        if not n.is_leaf:
            dot.node(name=n.uid + OP_SUFFIX, label=n.op_symbol)
            dot.edge(n.uid + OP_SUFFIX, n.uid)

    for operand, consumer in edges:
        target = consumer.uid if consumer.is_leaf else consumer.uid + OP_SUFFIX
        dot.edge(operand.uid, target)

    return dot


def draw_graph(root: Node, format: str = 'text') -> str:
    """
    Generate a visualization of the computation graph.

    Args:
        root: Root node of the graph to visualize.
        format: 'text' for a table, 'dot' for Graphviz DOT source.

    Returns:
        String representation of the graph.

    Raises:
        ValueError: If format is unknown.
    """
    if format == 'dot':
        return draw_dot(root).source
    if format != 'text':
        raise ValueError(f"Unknown format {format!r}, expected 'text' or 'dot'")

    nodes = topological_sort(root)
    lines = ['Computation Graph:', '=' * 50]
    for node in reversed(nodes):
        label = node.label or node.uid
        op_str = ''
        if not node.is_leaf:
            operand_labels = [o.label or o.uid for o in node.operands]
            operand_labels += [f'{k:g}' for k in node.ctx[:1]]
            op_str = f' = {node.op_symbol}(' + ', '.join(operand_labels) + ')'
        lines.append(
            f'{label:>10}: data={node.data:>10.4f}, '
            f'grad={node.grad:>10.4f}{op_str}'
        )
    return '\n'.join(lines)


def write_dot(root: Node, filename: Union[str, os.PathLike]) -> str:
    """
    Write the DOT description of the graph rooted at `root` to `filename`.

    Only the DOT text is written; no layout tool is invoked.

    Args:
        root: Root node of the graph.
        filename: Destination path.

    Returns:
        The path written to.

    Raises:
        OSError: If the file cannot be written.
    """
    dot = draw_dot(root)
    directory, name = os.path.split(os.fspath(filename))
    path = dot.save(filename=name, directory=directory or None)
    logger.debug("wrote graph of %r to %s", root, path)
    return path

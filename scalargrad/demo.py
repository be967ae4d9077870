#!/usr/bin/env python3
"""
ScalarGrad Demo: Backpropagating Through a Neuron
=================================================

Builds a one-input tanh neuron, backpropagates through it once and writes
the resulting graph to ``neuron_graph.dot`` for Graphviz.

Run: python -m scalargrad.demo
"""

import logging
from typing import Dict, Sequence, Tuple

from .draw import draw_graph, write_dot
from .engine import Node, backpropagate
from .nn import Neuron


logger = logging.getLogger(__name__)

DEMO_FILENAME = 'neuron_graph.dot'

Graph = Tuple[Dict[str, Node], Node]


def build_expression_graph(
    a: float = 2.0,
    b: float = -3.0,
    c: float = 10.0,
    f: float = -2.0
) -> Graph:
    """
    Build L = (a*b + c) * f.

    Returns:
        (nodes, root) where nodes maps each label to its Node and root is L.
    """
    na = Node(a, label='a')
    nb = Node(b, label='b')
    nc = Node(c, label='c')
    nf = Node(f, label='f')
    e = na * nb
    e.label = 'e'
    d = e + nc
    d.label = 'd'
    L = d * nf
    L.label = 'L'
    nodes = {n.label: n for n in (na, nb, nc, nf, e, d, L)}
    return nodes, L


def build_diamond_graph(x: float = 3.0) -> Graph:
    """
    Build L = (2x + 1) + 2x, where h = 2x feeds L along two paths.

    The paths have different lengths (h -> p -> L and h -> L), which is
    the shape the recursive traversal gets wrong.
    """
    nx = Node(x, label='x')
    h = nx * 2
    h.label = 'h'
    p = h + 1
    p.label = 'p'
    L = p + h
    L.label = 'L'
    nodes = {n.label: n for n in (nx, h, p, L)}
    return nodes, L


def build_neuron_graph(
    x: Sequence[float] = (2.0,),
    bias: float = 5.0
) -> Graph:
    """
    Run a zero-initialized neuron over inputs labelled x0, x1, ...

    Returns:
        (nodes, root) where root is the neuron output labelled 'o'.
    """
    inputs = [Node(xi, label=f'x{i}') for i, xi in enumerate(x)]
    neuron = Neuron(len(inputs), bias=bias)
    o = neuron(inputs)
    o.label = 'o'
    members = inputs + neuron.parameters() + neuron.products + neuron.sums + [o]
    nodes = {n.label: n for n in members}
    return nodes, o


def main() -> int:
    """Build the neuron graph, backpropagate and export it."""
    logging.basicConfig(level=logging.INFO, format='%(message)s')

    _, o = build_neuron_graph()
    backpropagate(o)
    logger.info(draw_graph(o, format='text'))

    path = write_dot(o, DEMO_FILENAME)
    logger.info("Saved computation graph to: %s", path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

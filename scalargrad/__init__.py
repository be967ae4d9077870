"""ScalarGrad: A scalar-node reverse-mode autograd engine."""

from .engine import (
    Node,
    Op,
    GraphCorruptionError,
    local_gradient,
    topological_sort,
    backpropagate,
    zero_grad_all,
)
from .draw import trace, draw_dot, draw_graph, write_dot
from .nn import Module, Neuron

__all__ = [
    "Node",
    "Op",
    "GraphCorruptionError",
    "local_gradient",
    "topological_sort",
    "backpropagate",
    "zero_grad_all",
    "trace",
    "draw_dot",
    "draw_graph",
    "write_dot",
    "Module",
    "Neuron",
]

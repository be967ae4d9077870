"""
ScalarGrad: A Scalar-Node Autograd Engine
==========================================

Reverse-mode automatic differentiation over scalar values.

Every Node records the operation that produced it and the operand Nodes it
was computed from. A single call to backpropagate() walks that DAG from an
output back to every transitive input and leaves d(root)/d(node) in each
node's ``grad``.

The derivative of each operation lives in one pure function,
local_gradient(), keyed by the Op tag stored on the node. Nodes carry no
per-operation closures, only the tag and whatever constants the rule needs
(the scalar of a mixed add/multiply, the exponent and base of a power).
"""

from __future__ import annotations
import enum
import itertools
import logging
import math
import numpy as np
from typing import Iterable, List, Sequence, Set, Tuple, Union


logger = logging.getLogger(__name__)

# Type alias for numeric inputs
Numeric = Union[int, float, np.floating]

# Traversal orders understood by backpropagate()
TOPOLOGICAL = 'topological'
RECURSIVE = 'recursive'
STRATEGIES = (TOPOLOGICAL, RECURSIVE)
DEFAULT_STRATEGY = TOPOLOGICAL

_ids = itertools.count()


class GraphCorruptionError(RuntimeError):
    """An operation node does not have the operands its op requires."""


class Op(enum.Enum):
    """
    Tag for the operation that produced a Node.

    Each member carries the symbol used for display/export and the number
    of operand Nodes the operation consumes. The ``*_SCALAR`` variants take a
    raw number as their right operand; that number is stored on the node
    rather than becoming a graph vertex.
    """

    LEAF = ('', 0)
    ADD = ('+', 2)
    ADD_SCALAR = ('+', 1)
    MUL = ('*', 2)
    MUL_SCALAR = ('*', 1)
    POW = ('pow', 1)
    TANH = ('tanh', 1)
    EXP = ('exp', 1)

    def __init__(self, symbol: str, arity: int) -> None:
        self.symbol = symbol
        self.arity = arity


def _is_numeric(x: object) -> bool:
    return isinstance(x, (int, float, np.floating)) and not isinstance(x, bool)


def _fmt(x: float) -> str:
    return f'{float(x)}'


# =============================================================================
# Local derivative rules
# =============================================================================

def local_gradient(
    op: Op,
    operand_values: Sequence[float],
    out_data: float,
    out_grad: float,
    ctx: Sequence[float] = ()
) -> Tuple[float, ...]:
    """
    Gradient contributions an output pushes onto each of its operands.

    Args:
        op: Operation that produced the output.
        operand_values: Current ``data`` of each operand, in operand order.
        out_data: The output's ``data``.
        out_grad: The output's accumulated gradient.
        ctx: Constants captured when the output was built.

    Returns:
        One contribution per operand, in operand order. Empty for leaves.

    Raises:
        GraphCorruptionError: If ``operand_values`` does not match the
            op's arity.

    Example:
        >>> local_gradient(Op.MUL, (2.0, -3.0), -6.0, 1.0)
        (-3.0, 2.0)
    """
    if len(operand_values) != op.arity:
        raise GraphCorruptionError(
            f"corrupt graph: '{op.name.lower()}' needs {op.arity} operand(s), "
            f"got {len(operand_values)}"
        )

    g = out_grad
    if op is Op.LEAF:
        return ()
    if op is Op.ADD:
        return (g, g)
    if op is Op.ADD_SCALAR:
        return (g,)
    if op is Op.MUL:
        v0, v1 = operand_values
        return (v1 * g, v0 * g)
    if op is Op.MUL_SCALAR:
        return (ctx[0] * g,)
    if op is Op.POW:
        # Evaluated at the base seen when the node was built.
        p, base = ctx
        if p == 0:
            return (0.0,)
        # base 0 with p < 1 gives inf, as IEEE pow does
        with np.errstate(divide='ignore', invalid='ignore'):
            slope = np.power(np.float64(base), p - 1)
        return (float(p * slope * g),)
    if op is Op.TANH:
        return ((1 - out_data ** 2) * g,)
    if op is Op.EXP:
        return (out_data * g,)
    raise GraphCorruptionError(f"corrupt graph: unknown operation {op!r}")


class Node:
    """
    A scalar vertex of the computation graph.

    Every Node knows:
    1. Its data (the scalar result)
    2. Its gradient (derivative of the backpropagated root w.r.t. this node)
    3. Its operands (the Nodes it was computed from, in order)
    4. Its op tag and captured constants (how to push gradient to operands)

    Operands and op are fixed at construction. Only ``data`` (explicit
    override) and ``grad`` (reset/accumulation) change afterwards.

    Attributes:
        data: The scalar value stored in this node.
        grad: The gradient of the last backpropagated root w.r.t. this node.
        label: Optional name for debugging and export.

    Example:
        >>> a = Node(2.0, label='a')
        >>> b = Node(-3.0, label='b')
        >>> e = a * b
        >>> e.backward()
        >>> a.grad, b.grad
        (-3.0, 2.0)
    """

    __slots__ = ('data', 'grad', 'label', '_operands', '_op', '_ctx', '_id')

    def __init__(
        self,
        data: Numeric,
        label: str = '',
        _operands: Tuple[Node, ...] = (),
        _op: Op = Op.LEAF,
        _ctx: Tuple[float, ...] = ()
    ) -> None:
        """
        Initialize a Node.

        Args:
            data: The scalar value to store.
            label: Optional name for debugging.
            _operands: Operand nodes (internal use).
            _op: The operation that produced this node (internal use).
            _ctx: Constants the backward rule needs (internal use).

        Raises:
            TypeError: If data is not a numeric type.
        """
        if not _is_numeric(data):
            raise TypeError(
                f"Node data must be numeric, got {type(data).__name__}"
            )

        self.data: float = float(data)
        self.grad: float = 0.0
        self.label: str = label
        self._operands: Tuple[Node, ...] = tuple(_operands)
        self._op: Op = _op
        self._ctx: Tuple[float, ...] = tuple(_ctx)
        self._id: int = next(_ids)

    def __repr__(self) -> str:
        name = self.label or self.uid
        text = f"Node({name}={self.data:.4f}, grad={self.grad:.4f}"
        if self._op is not Op.LEAF:
            operands = ' '.join(o.label or o.uid for o in self._operands)
            text += f", op={self._op.symbol}({operands})"
        return text + ')'

    # =========================================================================
    # Read-only accessors
    # =========================================================================

    @property
    def operands(self) -> Tuple[Node, ...]:
        """Operand nodes in construction order."""
        return self._operands

    @property
    def op(self) -> Op:
        return self._op

    @property
    def op_symbol(self) -> str:
        """Display symbol of the producing operation ('' for leaves)."""
        return self._op.symbol

    @property
    def ctx(self) -> Tuple[float, ...]:
        return self._ctx

    @property
    def uid(self) -> str:
        """Stable identifier, unique per Node for the life of the process."""
        return f'node{self._id}'

    @property
    def is_leaf(self) -> bool:
        return self._op is Op.LEAF

    # =========================================================================
    # Arithmetic Operations
    # =========================================================================

    def __add__(self, other: Union[Node, Numeric]) -> Node:
        """
        Addition: out = self + other

        Local derivatives:
            d(out)/d(self) = 1
            d(out)/d(other) = 1

        A numeric ``other`` is kept as a constant, not a graph node.
        """
        if isinstance(other, Node):
            return Node(
                self.data + other.data,
                f'{self.label}+{other.label}',
                (self, other),
                Op.ADD,
            )
        if not _is_numeric(other):
            return NotImplemented
        return Node(
            self.data + other,
            f'{self.label}+{_fmt(other)}',
            (self,),
            Op.ADD_SCALAR,
            (float(other),),
        )

    def __radd__(self, other: Numeric) -> Node:
        """Handle numeric + Node."""
        return self + other

    def __mul__(self, other: Union[Node, Numeric]) -> Node:
        """
        Multiplication: out = self * other

        Local derivatives:
            d(out)/d(self) = other.data
            d(out)/d(other) = self.data
        """
        if isinstance(other, Node):
            return Node(
                self.data * other.data,
                f'{self.label}*{other.label}',
                (self, other),
                Op.MUL,
            )
        if not _is_numeric(other):
            return NotImplemented
        return Node(
            self.data * other,
            f'{self.label}*{_fmt(other)}',
            (self,),
            Op.MUL_SCALAR,
            (float(other),),
        )

    def __rmul__(self, other: Numeric) -> Node:
        """Handle numeric * Node."""
        return self * other

    def __neg__(self) -> Node:
        return self * -1

    def __sub__(self, other: Union[Node, Numeric]) -> Node:
        return self + (-other)

    def __rsub__(self, other: Numeric) -> Node:
        return other + (-self)

    def __truediv__(self, other: Union[Node, Numeric]) -> Node:
        """Division: self / other = self * other^(-1)."""
        return self * (other ** -1)

    def __rtruediv__(self, other: Numeric) -> Node:
        return other * (self ** -1)

    def __pow__(self, p: Numeric) -> Node:
        """
        Power: out = self^p (p is a constant, not a Node)

        Local derivative:
            d(out)/d(self) = p * self^(p-1)

        The base is captured when the node is built, so overriding
        ``self.data`` afterwards does not change this node's derivative.

        Raises:
            TypeError: If p is a Node or not numeric.
            ValueError: If self.data < 0 and p is not an integer.
        """
        if isinstance(p, Node):
            raise TypeError(
                "Power with Node exponent not supported. "
                "Use exp(p * log(self)) with a constant base instead."
            )
        if not _is_numeric(p):
            return NotImplemented
        if self.data < 0 and not float(p).is_integer():
            raise ValueError(
                f"pow undefined for negative base {self.data} "
                f"with non-integer exponent {p}"
            )
        return Node(
            self.data ** p,
            f'pow({self.label},{_fmt(p)})',
            (self,),
            Op.POW,
            (float(p), self.data),
        )

    def pow(self, p: Numeric) -> Node:
        return self ** p

    # =========================================================================
    # Transcendental Functions
    # =========================================================================

    def tanh(self) -> Node:
        """
        Hyperbolic tangent: out = tanh(self)

        Local derivative:
            d(tanh(x))/dx = 1 - tanh(x)^2, read from out.data
        """
        return Node(math.tanh(self.data), f'tanh({self.label})', (self,), Op.TANH)

    def exp(self) -> Node:
        """
        Exponential: out = e^self

        Local derivative:
            d(e^x)/dx = e^x, read from out.data

        Inputs beyond the float range give inf rather than raising.
        """
        try:
            e = math.exp(self.data)
        except OverflowError:
            e = math.inf
        return Node(e, f'exp({self.label})', (self,), Op.EXP)

    # =========================================================================
    # Backpropagation
    # =========================================================================

    def _backward(self) -> None:
        """Push this node's grad onto its operands' grads."""
        if self._op is Op.LEAF:
            return
        if len(self._operands) != self._op.arity:
            raise GraphCorruptionError(
                f"corrupt graph: {self._op.name.lower()} node "
                f"'{self.label or self.uid}' missing required operand"
            )
        contributions = local_gradient(
            self._op,
            [o.data for o in self._operands],
            self.data,
            self.grad,
            self._ctx,
        )
        for operand, contribution in zip(self._operands, contributions):
            operand.grad += contribution

    def backward(self, strategy: str = DEFAULT_STRATEGY) -> None:
        """
        Compute d(self)/d(node) for every node reachable from self.

        Gradients are reset before the pass, so calling backward() twice
        gives the same result both times.

        Args:
            strategy: 'topological' or 'recursive'. See backpropagate().
        """
        backpropagate(self, strategy=strategy)

    def zero_grad(self) -> None:
        """Reset this node's gradient to zero."""
        self.grad = 0.0

    def item(self) -> float:
        """Return the scalar value (PyTorch compatibility)."""
        return self.data


def zero_grad_all(nodes: Iterable[Node]) -> None:
    """
    Zero gradients for a collection of Nodes.

    Args:
        nodes: Node objects to zero.
    """
    for n in nodes:
        n.grad = 0.0


def topological_sort(root: Node) -> List[Node]:
    """
    Compute topological ordering of the computation graph rooted at `root`.

    Iterative depth-first post-order: operands are visited in construction
    order and every node appears once, after all of its operands. The root
    is last, so walking the list backwards visits every node after all the
    nodes that consume it.

    Args:
        root: The root node of the computation graph.

    Returns:
        List of Nodes in topological order (root is last).

    Example:
        >>> a = Node(1.0)
        >>> b = Node(2.0)
        >>> c = a + b
        >>> d = c * a
        >>> topological_sort(d) == [a, b, c, d]
        True
    """
    topo: List[Node] = []
    visited: Set[int] = set()
    stack: List[Tuple[Node, bool]] = [(root, False)]

    while stack:
        node, expanded = stack.pop()
        if expanded:
            topo.append(node)
            continue
        if id(node) in visited:
            continue
        visited.add(id(node))
        stack.append((node, True))
        # Reversed so the first operand is expanded first
        for operand in reversed(node._operands):
            if id(operand) not in visited:
                stack.append((operand, False))

    return topo


def _reset_recursive(node: Node) -> None:
    node.grad = 0.0
    for operand in node._operands:
        _reset_recursive(operand)


def _propagate_recursive(node: Node) -> None:
    node._backward()
    for operand in node._operands:
        _propagate_recursive(operand)


def backpropagate(root: Node, strategy: str = DEFAULT_STRATEGY) -> None:
    """
    Reset every reachable gradient, seed root.grad = 1 and propagate.

    Two traversal orders are available:

    'topological' (default)
        Build one topological order, zero every node in it, then call each
        node's rule exactly once in reverse order. A node's rule only runs
        after every consumer has contributed to its grad, so shared
        sub-expressions get the textbook gradient.

    'recursive'
        Recursive reset followed by a recursive pre-order descent: each node
        applies its rule and then recurses into its operands. A node reached
        by more than one path runs its rule once per path, with whatever
        grad it held at that moment, so operands of shared non-leaf nodes
        can receive wrong gradients. Kept as a regression probe.

    Args:
        root: Output node to differentiate.
        strategy: 'topological' or 'recursive'.

    Raises:
        ValueError: If strategy is unknown.
        GraphCorruptionError: If a node is missing a required operand.

    Example:
        >>> x = Node(2.0)
        >>> y = x ** 2 + 3 * x
        >>> backpropagate(y)
        >>> x.grad  # dy/dx = 2x + 3
        7.0
    """
    if strategy not in STRATEGIES:
        raise ValueError(
            f"Unknown strategy {strategy!r}, expected one of {STRATEGIES}"
        )

    if strategy == RECURSIVE:
        _reset_recursive(root)
        root.grad = 1.0
        _propagate_recursive(root)
        logger.debug("recursive backpropagation from %r done", root)
        return

    topo = topological_sort(root)
    zero_grad_all(topo)
    root.grad = 1.0
    for node in reversed(topo):
        node._backward()
    logger.debug("backpropagated %d nodes from %r", len(topo), root)

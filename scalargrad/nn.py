"""
Neuron Module
=============

A fixed-arity neuron built from the engine's operations.

The neuron computes tanh(w[n-1]*x[n-1] + ... + w[0]*x[0] + bias) as an
explicit chain of labelled products and partial sums, so every
intermediate step shows up by name in an exported graph.
"""

from __future__ import annotations
import numpy as np
from typing import List, Optional, Sequence, Union

from .engine import Node, Numeric


INITS = ('zeros', 'uniform')


class Module:
    """
    Base class for components that own trainable Nodes.

    Provides:
    - parameters(): collect all trainable Node objects
    - zero_grad(): reset their gradients
    """

    def parameters(self) -> List[Node]:
        """Return all trainable parameters in this module."""
        return []

    def zero_grad(self) -> None:
        """Reset gradients of all parameters to zero."""
        for p in self.parameters():
            p.grad = 0.0

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class Neuron(Module):
    """
    A single tanh neuron with a fixed number of inputs.

    Computes: output = tanh(sum(w_i * x_i) + bias)

    The products and partial sums of the most recent call are kept on the
    neuron (``products``, ``sums``) with labels ``products[i]`` and
    ``sums[i]``.

    Attributes:
        w: List of weight Nodes labelled ``w[i]``
        b: Bias Node labelled ``bias``
        products: Nodes w[i]*x[i] from the last call
        sums: Running sums from the last call

    Example:
        >>> n = Neuron(1, bias=5.0)
        >>> out = n([Node(2.0, label='x0')])
        >>> round(out.data, 4)
        0.9999
    """

    def __init__(
        self,
        nin: int,
        bias: Numeric = 0.0,
        init: str = 'zeros',
        seed: Optional[int] = None
    ) -> None:
        """
        Initialize a neuron.

        Args:
            nin: Number of inputs to this neuron.
            bias: Initial bias.
            init: 'zeros' or 'uniform' (uniform in [-1, 1)).
            seed: Seed for 'uniform' initialization.

        Raises:
            ValueError: If nin < 1 or init is unknown.
        """
        if nin < 1:
            raise ValueError(f"Neuron needs at least one input, got {nin}")
        if init not in INITS:
            raise ValueError(f"Unknown init {init!r}, expected one of {INITS}")

        if init == 'zeros':
            weights = np.zeros(nin)
        else:
            weights = np.random.default_rng(seed).uniform(-1.0, 1.0, nin)

        self.w: List[Node] = [
            Node(float(wi), label=f'w[{i}]') for i, wi in enumerate(weights)
        ]
        self.b: Node = Node(bias, label='bias')
        self.products: List[Node] = []
        self.sums: List[Node] = []

    def __call__(self, x: Sequence[Union[Node, Numeric]]) -> Node:
        """
        Forward pass: compute neuron output.

        Args:
            x: Inputs (Nodes or numbers), one per weight.

        Returns:
            Single Node representing the neuron output.

        Raises:
            ValueError: If input length doesn't match weight count.
        """
        if len(x) != len(self.w):
            raise ValueError(
                f"Expected {len(self.w)} inputs, got {len(x)}"
            )

        products: List[Node] = []
        sums: List[Node] = []
        for i, (wi, xi) in enumerate(zip(self.w, x)):
            product = wi * xi
            product.label = f'products[{i}]'
            total = product + (sums[-1] if sums else self.b)
            total.label = f'sums[{i}]'
            products.append(product)
            sums.append(total)

        self.products = products
        self.sums = sums
        return sums[-1].tanh()

    def parameters(self) -> List[Node]:
        """Return weights and bias."""
        return self.w + [self.b]

    def __repr__(self) -> str:
        return f"Neuron({len(self.w)})"

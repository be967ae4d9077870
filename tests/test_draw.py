"""
Unit Tests: Graph Export
========================

Run with: pytest tests/test_draw.py -v
"""

import os
import pytest

from scalargrad import Node, backpropagate, trace, draw_dot, draw_graph, write_dot


def build_expression():
    a = Node(2.0, label='a')
    b = Node(-3.0, label='b')
    c = Node(10.0, label='c')
    f = Node(-2.0, label='f')
    e = a * b
    e.label = 'e'
    d = e + c
    d.label = 'd'
    L = d * f
    L.label = 'L'
    backpropagate(L)
    return a, b, c, f, e, d, L


class TestTrace:
    """Node and edge collection."""

    def test_nodes_and_edges(self) -> None:
        a, b, c, f, e, d, L = build_expression()
        nodes, edges = trace(L)
        assert set(nodes) == {a, b, c, f, e, d, L}
        assert len(nodes) == 7
        assert edges == [(a, e), (b, e), (e, d), (c, d), (d, L), (f, L)]

    def test_shared_node_listed_once(self) -> None:
        x = Node(2.0, label='x')
        y = x * x
        nodes, edges = trace(y)
        assert nodes == [x, y]
        assert edges == [(x, y), (x, y)]


class TestDrawDot:
    """DOT source produced for Graphviz."""

    def test_no_render_format(self) -> None:
        *_, L = build_expression()
        assert draw_dot(L).format == 'pdf'

    def test_layout_left_to_right(self) -> None:
        *_, L = build_expression()
        assert 'rankdir=LR' in draw_dot(L).source

    def test_one_record_per_node(self) -> None:
        *_, L = build_expression()
        src = draw_graph(L, format='dot')
        assert src.count('shape=record') == 7

    def test_one_op_node_per_operation(self) -> None:
        *_, L = build_expression()
        src = draw_graph(L, format='dot')
        # e, d and L are the only non-leaf nodes
        assert src.count('_op [label=') == 3

    def test_record_shows_data_and_grad(self) -> None:
        a, *_ = build_expression()
        src = draw_graph(a, format='dot')
        assert 'data:2.0000' in src
        assert 'grad:6.0000' in src

    def test_edges_point_from_operand_to_consumer(self) -> None:
        a, b, c, f, e, d, L = build_expression()
        src = draw_dot(L).source
        assert f'{a.uid} -> {e.uid}_op' in src
        assert f'{b.uid} -> {e.uid}_op' in src
        assert f'{e.uid}_op -> {e.uid}' in src
        assert f'{d.uid} -> {L.uid}_op' in src
        assert f'{L.uid} -> ' not in src

    def test_leaf_root(self) -> None:
        a = Node(1.0, label='a')
        src = draw_dot(a).source
        assert src.count('shape=record') == 1
        assert '->' not in src

    def test_record_special_characters_escaped(self) -> None:
        a = Node(1.0, label='a|b')
        src = draw_dot(a).source
        assert 'a\\|b' in src


class TestDrawGraph:
    """Text format and argument checks."""

    def test_text_format(self) -> None:
        *_, L = build_expression()
        text = draw_graph(L)
        assert text.startswith('Computation Graph:')
        assert '= +(e, c)' in text
        assert '= *(d, f)' in text

    def test_text_shows_folded_scalar(self) -> None:
        a = Node(2.0, label='a')
        out = a * 3
        out.label = 'out'
        assert '= *(a, 3)' in draw_graph(out)

    def test_unknown_format(self) -> None:
        with pytest.raises(ValueError):
            draw_graph(Node(1.0), format='png')


class TestWriteDot:
    """Writing the DOT file."""

    def test_writes_file(self, tmp_path) -> None:
        *_, L = build_expression()
        target = tmp_path / 'L_graph.dot'
        path = write_dot(L, target)

        assert os.path.samefile(path, target)
        with open(target) as fh:
            assert fh.read() == draw_dot(L).source

    def test_relative_filename(self, tmp_path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        write_dot(Node(1.0, label='a'), 'a.dot')
        assert (tmp_path / 'a.dot').exists()

    def test_unwritable_path_raises(self, tmp_path) -> None:
        blocker = tmp_path / 'blocker'
        blocker.write_text('not a directory')
        with pytest.raises(OSError):
            write_dot(Node(1.0), blocker / 'graph.dot')

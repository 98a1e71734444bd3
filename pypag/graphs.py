import typing
from enum import Enum

import networkx as nx

from pypag.domain import Node


class Endpoint(Enum):
    """The mark at one end of an edge"""
    TAIL = '-'
    ARROW = '>'
    CIRCLE = 'o'
    NONE = ' '

    def __str__(self):
        return type(self).__name__ + '.' + self.name

    def __repr__(self):
        return type(self).__name__ + '.' + self.name


_LEFT_SYMBOL = {Endpoint.TAIL: '-', Endpoint.ARROW: '<', Endpoint.CIRCLE: 'o', Endpoint.NONE: ' '}
_RIGHT_SYMBOL = {Endpoint.TAIL: '-', Endpoint.ARROW: '>', Endpoint.CIRCLE: 'o', Endpoint.NONE: ' '}


class Edge:
    """An edge between `node1` and `node2` with `endpoint1` at `node1` and `endpoint2` at `node2`"""

    def __init__(self, node1, node2, endpoint1: Endpoint, endpoint2: Endpoint):
        self.node1, self.node2 = node1, node2
        self.endpoint1, self.endpoint2 = endpoint1, endpoint2

    def endpoint_at(self, node) -> Endpoint:
        if node is self.node1:
            return self.endpoint1
        if node is self.node2:
            return self.endpoint2
        raise ValueError('{} is not an end of {}'.format(node, self))

    def other(self, node):
        if node is self.node1:
            return self.node2
        if node is self.node2:
            return self.node1
        raise ValueError('{} is not an end of {}'.format(node, self))

    def __key(self):
        return frozenset({(self.node1, self.endpoint1), (self.node2, self.endpoint2)})

    def __eq__(self, other):
        return isinstance(other, Edge) and self.__key() == other.__key()

    def __hash__(self):
        return hash(self.__key())

    def __iter__(self):
        return iter((self.node1, self.node2))

    def __str__(self):
        return '{} {}-{} {}'.format(self.node1, _LEFT_SYMBOL[self.endpoint1], _RIGHT_SYMBOL[self.endpoint2], self.node2)

    def __repr__(self):
        return 'Edge(' + str(self) + ')'


class SymTriple:
    """Symmetric triple where (X,Y,Z) == (Z,Y,X)"""

    def __init__(self, left, middle, right):
        self.left, self.middle, self.right = left, middle, right

    def __hash__(self):
        return (hash(self.left) + hash(self.right)) ^ hash(self.middle)

    def __eq__(self, other):
        if not isinstance(other, SymTriple) or self.middle != other.middle:
            return False
        return (self.left, self.right) == (other.left, other.right) or \
               (self.right, self.left) == (other.left, other.right)

    def __iter__(self):
        return iter((self.left, self.middle, self.right))

    def sides(self):
        return {self.left, self.right}

    @property
    def dual(self):
        return SymTriple(self.right, self.middle, self.left)

    def __str__(self):
        return '<' + (', '.join(str(t) for t in (self.left, self.middle, self.right))) + '>'

    def __repr__(self):
        return 'SymTriple' + str(self)


class PAG:
    """Partial Ancestral Graph

    Every pair of adjacent nodes is joined by exactly one edge which carries a mark at each of its ends.
    `endpoint(x, y)` is the mark at `y` of the edge between `x` and `y`, e.g., `x o-> y` has
    `endpoint(x, y) == ARROW` and `endpoint(y, x) == CIRCLE`.
    Triples can be additionally marked as underlined or dotted-underlined.
    """

    def __init__(self, nodes=None, edges=None):
        self._nodes = []
        self._node_set = set()
        self._marks = dict()  # x -> {y: mark at y on x *-* y}
        self.locked = set()  # (x, y): the mark at y on x *-* y is frozen
        self.underlines = set()
        self.dotted_underlines = set()
        if nodes is not None:
            self.add_nodes(nodes)
        if edges is not None:
            for x, y in edges:
                self.add_nondirected_edge(x, y)

    # nodes
    def add_node(self, v):
        if v not in self._node_set:
            self._nodes.append(v)
            self._node_set.add(v)
            self._marks[v] = dict()

    def add_nodes(self, nbunch):
        for v in nbunch:
            self.add_node(v)

    @property
    def nodes(self) -> typing.List:
        return list(self._nodes)

    def node(self, name: str):
        """A node with the given name or `None`"""
        for v in self._nodes:
            if v.name == name:
                return v
        return None

    def __len__(self):
        return len(self._nodes)

    def __iter__(self):
        return iter(list(self._nodes))

    def __contains__(self, item):
        return item in self._node_set

    # edges
    def add_edge(self, x, y, at_x: Endpoint = Endpoint.CIRCLE, at_y: Endpoint = Endpoint.CIRCLE):
        if x is y:
            raise ValueError('self-loop is not allowed: {}'.format(x))
        if x not in self._node_set or y not in self._node_set:
            raise ValueError('unknown node: {}'.format(x if x not in self._node_set else y))
        if self.is_adj(x, y):
            raise ValueError('{} and {} are already adjacent: {}'.format(x, y, self.edge(x, y)))
        self._marks[x][y] = at_y
        self._marks[y][x] = at_x

    def add_directed_edge(self, x, y):
        """x --> y"""
        self.add_edge(x, y, Endpoint.TAIL, Endpoint.ARROW)

    def add_undirected_edge(self, x, y):
        """x --- y"""
        self.add_edge(x, y, Endpoint.TAIL, Endpoint.TAIL)

    def add_bidirected_edge(self, x, y):
        """x <-> y"""
        self.add_edge(x, y, Endpoint.ARROW, Endpoint.ARROW)

    def add_nondirected_edge(self, x, y):
        """x o-o y"""
        self.add_edge(x, y, Endpoint.CIRCLE, Endpoint.CIRCLE)

    def add_partially_oriented_edge(self, x, y):
        """x o-> y"""
        self.add_edge(x, y, Endpoint.CIRCLE, Endpoint.ARROW)

    def add_path(self, iterable, at_x=Endpoint.CIRCLE, at_y=Endpoint.CIRCLE):
        for x, y in zip(iterable, iterable[1:]):
            self.add_edge(x, y, at_x, at_y)

    def remove_edge(self, x, y):
        if not self.is_adj(x, y):
            raise ValueError('{} and {} are not adjacent'.format(x, y))
        del self._marks[x][y]
        del self._marks[y][x]
        self.locked.discard((x, y))
        self.locked.discard((y, x))

    def is_adj(self, x, y) -> bool:
        return y in self._marks.get(x, ())

    def adj(self, x) -> typing.List:
        """Adjacencies in the order edges were added"""
        return list(self._marks.get(x, ()))

    def edge(self, x, y) -> typing.Optional[Edge]:
        if not self.is_adj(x, y):
            return None
        return Edge(x, y, self._marks[y][x], self._marks[x][y])

    def edges(self) -> typing.List[Edge]:
        seen = set()
        es = []
        for x in self._nodes:
            for y, at_y in self._marks[x].items():
                if y not in seen:
                    es.append(Edge(x, y, self._marks[y][x], at_y))
            seen.add(x)
        return es

    def num_edges(self) -> int:
        return sum(len(ys) for ys in self._marks.values()) // 2

    # endpoints
    def endpoint(self, x, y) -> typing.Optional[Endpoint]:
        """The mark at y on the edge between x and y (None if x and y are not adjacent)"""
        return self._marks.get(x, {}).get(y)

    def set_endpoint(self, x, y, endpoint: Endpoint) -> bool:
        """Set the mark at y on the edge between x and y

        Returns
        -------
        True if the mark is changed. A locked mark is never changed.
        """
        if not self.is_adj(x, y):
            raise ValueError('{} and {} are not adjacent'.format(x, y))
        if (x, y) in self.locked or self._marks[x][y] == endpoint:
            return False
        self._marks[x][y] = endpoint
        return True

    def lock(self, x, y):
        if not self.is_adj(x, y):
            raise ValueError('{} and {} are not adjacent'.format(x, y))
        self.locked.add((x, y))

    def is_locked(self, x, y) -> bool:
        return (x, y) in self.locked

    def reorient_all_with(self, endpoint: Endpoint):
        for x in self._nodes:
            for y in self._marks[x]:
                if (x, y) not in self.locked:
                    self._marks[x][y] = endpoint

    def count_endpoints(self, endpoint: Endpoint) -> int:
        return sum(1 for x in self._nodes for mark in self._marks[x].values() if mark == endpoint)

    # edge types
    def is_directed(self, x, y) -> bool:
        """x --> y"""
        return self.endpoint(y, x) == Endpoint.TAIL and self.endpoint(x, y) == Endpoint.ARROW

    def is_undirected(self, x, y) -> bool:
        """x --- y"""
        return self.endpoint(y, x) == Endpoint.TAIL and self.endpoint(x, y) == Endpoint.TAIL

    def is_bidirected(self, x, y) -> bool:
        """x <-> y"""
        return self.endpoint(y, x) == Endpoint.ARROW and self.endpoint(x, y) == Endpoint.ARROW

    def is_def_collider(self, a, b, c) -> bool:
        """a *-> b <-* c"""
        return self.endpoint(a, b) == Endpoint.ARROW and self.endpoint(c, b) == Endpoint.ARROW

    def pa(self, x) -> typing.List:
        """Parents -- connected through a directed edge towards x"""
        return [y for y in self.adj(x) if self.is_directed(y, x)]

    def ch(self, x) -> typing.List:
        """Children -- connected through a directed edge from x"""
        return [y for y in self.adj(x) if self.is_directed(x, y)]

    # triple marks
    def add_underline_triple(self, a, b, c):
        self.underlines.add(SymTriple(a, b, c))

    def remove_underline_triple(self, a, b, c):
        self.underlines.discard(SymTriple(a, b, c))

    def is_underline_triple(self, a, b, c) -> bool:
        return SymTriple(a, b, c) in self.underlines

    def add_dotted_underline_triple(self, a, b, c):
        self.dotted_underlines.add(SymTriple(a, b, c))

    def remove_dotted_underline_triple(self, a, b, c):
        self.dotted_underlines.discard(SymTriple(a, b, c))

    def is_dotted_underline_triple(self, a, b, c) -> bool:
        return SymTriple(a, b, c) in self.dotted_underlines

    def copy(self) -> 'PAG':
        new_copy = PAG(self._nodes)
        for x in self._nodes:
            new_copy._marks[x] = dict(self._marks[x])
        new_copy.locked = set(self.locked)
        new_copy.underlines = set(self.underlines)
        new_copy.dotted_underlines = set(self.dotted_underlines)
        return new_copy

    def as_networkx_graph(self) -> nx.Graph:
        """An undirected networkx graph where each edge keeps its marks as an attribute `endpoints`,
        a dictionary from each end of the edge to its mark."""
        g = nx.Graph()
        g.add_nodes_from(self._nodes)
        for e in self.edges():
            g.add_edge(e.node1, e.node2, endpoints={e.node1: e.endpoint1, e.node2: e.endpoint2})
        return g

    @staticmethod
    def from_networkx_dag(dag: nx.DiGraph, nodes=None) -> 'PAG':
        """A PAG with the directed edges of the given DAG, restricted to `nodes` if given"""
        nodes = list(dag.nodes) if nodes is None else list(nodes)
        g = PAG(nodes)
        for x, y in dag.edges:
            if x in g and y in g:
                g.add_directed_edge(x, y)
        return g

    def __str__(self):
        lines = ['Nodes: ' + ', '.join(str(v) for v in self._nodes), 'Edges:']
        lines.extend('{}. {}'.format(i, e) for i, e in enumerate(self.edges(), 1))
        if self.underlines:
            lines.append('Underlines: ' + ', '.join(sorted(str(t) for t in self.underlines)))
        if self.dotted_underlines:
            lines.append('Dotted underlines: ' + ', '.join(sorted(str(t) for t in self.dotted_underlines)))
        return '\n'.join(lines)

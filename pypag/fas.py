import logging
from itertools import count

from pypag.domain import Knowledge
from pypag.graphs import PAG
from pypag.independence import CITester
from pypag.sepsets import SepsetMap
from pypag.utils import choices


class FastAdjacencySearch:
    """Adjacency phase of the PC algorithm

    Starting from a given graph (a complete graph by default), an edge x *-* y is removed as soon as x and y are
    found independent given a subset of the other adjacencies of x. Subsets are tried in increasing size.
    The separating sets found are recorded in `sepset_map`.
    """

    def __init__(self, ci_tester: CITester, initial_graph: PAG = None, depth: int = -1, knowledge: Knowledge = None,
                 verbose=False):
        if ci_tester is None:
            raise TypeError('a conditional independence tester is required')
        if depth < -1:
            raise ValueError('Depth must be -1 (unlimited) or >= 0: {}'.format(depth))
        self.ci_tester = ci_tester
        self.initial_graph = initial_graph
        self.depth = depth
        self.knowledge = knowledge if knowledge is not None else Knowledge()
        self.verbose = verbose
        self.sepset_map = SepsetMap()
        self.logger = logging.getLogger(self.__class__.__module__ + '.' + self.__class__.__name__)

    def _complete_graph(self) -> PAG:
        g = PAG(self.ci_tester.variables)
        nodes = g.nodes
        for i, x in enumerate(nodes):
            for y in nodes[i + 1:]:
                g.add_nondirected_edge(x, y)
        return g

    def _is_removable(self, x, y):
        return not (self.knowledge.is_required(x.name, y.name) or self.knowledge.is_required(y.name, x.name))

    def search(self) -> PAG:
        """Find adjacencies. Every remaining edge is returned as x o-o y."""
        self.sepset_map = SepsetMap()
        if self.initial_graph is None:
            g = self._complete_graph()
        else:
            g = PAG(self.initial_graph.nodes)
            for e in self.initial_graph.edges():
                g.add_nondirected_edge(e.node1, e.node2)

        # pairs forbidden both ways are not adjacent
        for e in g.edges():
            x, y = e.node1, e.node2
            if self.knowledge.is_forbidden(x.name, y.name) and self.knowledge.is_forbidden(y.name, x.name):
                if self._is_removable(x, y):
                    g.remove_edge(x, y)
                    self.sepset_map.set(x, y, [])

        for d in count():
            if self.depth != -1 and d > self.depth:
                break
            if self.verbose:
                print('fas: checking depth: {}'.format(d))
            more = False
            for x in g.nodes:
                for y in g.adj(x):
                    if not g.is_adj(x, y):
                        continue
                    candidates = [v for v in g.adj(x) if v is not y]
                    if len(candidates) < d:
                        continue
                    if len(candidates) > d:
                        more = True
                    if not self._is_removable(x, y):
                        continue
                    for cond in choices(candidates, d):
                        if self.ci_tester.is_independent(x, y, cond):
                            g.remove_edge(x, y)
                            self.sepset_map.set(x, y, cond)
                            if self.verbose:
                                print('fas: removed {} -- {} given {{{}}}'.format(x, y, ', '.join(str(z) for z in cond)))
                            break
            self.logger.info('depth %d: %d edges remain', d, g.num_edges())
            if not more:
                break

        return g

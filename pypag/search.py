import logging
import time
import typing

from pypag.domain import Knowledge
from pypag.fas import FastAdjacencySearch
from pypag.graphs import PAG, Endpoint, SymTriple
from pypag.independence import CITester
from pypag.orient import FciOrient
from pypag.sepsets import SepsetsGreedy, SepsetsSet
from pypag.utils import ChoiceGenerator, choices, ordered_unique

TAIL, ARROW, CIRCLE = Endpoint.TAIL, Endpoint.ARROW, Endpoint.CIRCLE


def _validate_bound(name, value):
    if value < -1:
        raise ValueError('{} must be -1 (unlimited) or >= 0: {}'.format(name, value))


def _circle_copy(skeleton: PAG) -> PAG:
    g = PAG(skeleton.nodes)
    for e in skeleton.edges():
        g.add_nondirected_edge(e.node1, e.node2)
    return g


class AbstractPAGSearch:
    """Abstract class for searches returning a partial ancestral graph"""

    def __init__(self, ci_tester: CITester, knowledge: Knowledge = None, verbose=False):
        if ci_tester is None:
            raise TypeError('a conditional independence tester is required')
        if knowledge is not None and not isinstance(knowledge, Knowledge):
            raise TypeError('not a Knowledge: {}'.format(type(knowledge).__name__))
        self.ci_tester = ci_tester
        self.knowledge = knowledge if knowledge is not None else Knowledge()
        self.verbose = verbose
        self.elapsed_time = 0.0
        self.logger = logging.getLogger(self.__class__.__module__ + '.' + self.__class__.__name__)

    def search(self, *args, **kwargs) -> PAG:
        raise NotImplementedError()

    def _is_required(self, x, y):
        return self.knowledge.is_required(x.name, y.name) or self.knowledge.is_required(y.name, x.name)

    def _timed(self, func, *args):
        started = time.time()
        try:
            return func(*args)
        finally:
            self.elapsed_time = time.time() - started
            self.logger.info('elapsed time: %.3f seconds', self.elapsed_time)


class GFCI(AbstractPAGSearch):
    """Orients a skeleton, e.g., one found by a score-based search, into a PAG

    The skeleton also serves as a reference graph: separating sets are searched among its adjacencies, and its
    definite colliders are kept as colliders.
    """

    def __init__(self, ci_tester: CITester, knowledge: Knowledge = None, max_cond_size: int = -1,
                 max_path_length: int = -1, complete_rule_set: bool = False, verbose=False):
        super().__init__(ci_tester, knowledge, verbose)
        _validate_bound('Max conditioning set size', max_cond_size)
        _validate_bound('Max path length', max_path_length)
        self.max_cond_size = max_cond_size
        self.max_path_length = max_path_length
        self.complete_rule_set = complete_rule_set
        self.sepsets = None
        self.orienter = None

    def search(self, skeleton: PAG) -> PAG:
        return self._timed(self._search, skeleton)

    def _search(self, skeleton: PAG) -> PAG:
        self.logger.info('Starting GFCI over %d nodes and %d edges.', len(skeleton), skeleton.num_edges())
        reference = skeleton.copy()
        graph = _circle_copy(skeleton)
        self.sepsets = SepsetsGreedy(reference, self.ci_tester, self.max_cond_size, self.verbose)

        for b in graph.nodes:
            adj = reference.adj(b)
            if len(adj) < 2:
                continue
            for i, j in ChoiceGenerator(len(adj), 2):
                a, c = adj[i], adj[j]
                if graph.is_adj(a, c) and reference.is_adj(a, c) and not self._is_required(a, c):
                    if self.sepsets.sepset(a, c) is not None:
                        graph.remove_edge(a, c)
                        self.logger.debug('removed %s -- %s', a, c)

        self.orienter = FciOrient(self.sepsets, self.knowledge, self.complete_rule_set, self.max_path_length,
                                  self.verbose)
        self.orienter.orient(graph, reference)
        self.logger.info('Finishing GFCI with %d edges.', graph.num_edges())
        return graph


class FCI(AbstractPAGSearch):
    """Adjacency search followed by the FCI orientation rules. Possibly-d-separating sets are not searched."""

    def __init__(self, ci_tester: CITester, knowledge: Knowledge = None, depth: int = -1, max_path_length: int = -1,
                 complete_rule_set: bool = False, verbose=False):
        super().__init__(ci_tester, knowledge, verbose)
        _validate_bound('Depth', depth)
        _validate_bound('Max path length', max_path_length)
        self.depth = depth
        self.max_path_length = max_path_length
        self.complete_rule_set = complete_rule_set
        self.sepsets = None
        self.orienter = None

    def search(self, initial_graph: PAG = None) -> PAG:
        return self._timed(self._search, initial_graph)

    def _search(self, initial_graph):
        self.logger.info('Starting FCI over %d variables.', len(self.ci_tester.variables))
        fas = FastAdjacencySearch(self.ci_tester, initial_graph, self.depth, self.knowledge, self.verbose)
        graph = fas.search()
        self.sepsets = SepsetsSet(fas.sepset_map, self.ci_tester, self.verbose)

        self.orienter = FciOrient(self.sepsets, self.knowledge, self.complete_rule_set, self.max_path_length,
                                  self.verbose)
        self.orienter.orient(graph)
        self.logger.info('Finishing FCI with %d edges.', graph.num_edges())
        return graph


class CCD(AbstractPAGSearch):
    """Cyclic Causal Discovery [1]

    The resulting graph carries underlined and dotted-underlined triples. The supplementary separating sets of
    dotted-underlined triples are kept in `sup_sepsets`.

    References
    ----------
    [1] Thomas Richardson and Peter Spirtes (1999),
        Automated discovery of linear feedback models, in Computation, Causation, and Discovery, MIT Press
    """

    def __init__(self, ci_tester: CITester, knowledge: Knowledge = None, depth: int = 5, apply_r1: bool = True,
                 verbose=False):
        super().__init__(ci_tester, knowledge, verbose)
        _validate_bound('Depth', depth)
        self.depth = depth
        self.apply_r1 = apply_r1
        self.sepsets = None
        self.sup_sepsets = dict()
        self.trivial = False

    def search(self, skeleton: PAG) -> PAG:
        return self._timed(self._search, skeleton)

    def _search(self, skeleton: PAG) -> PAG:
        self.logger.info('Starting CCD over %d nodes and %d edges.', len(skeleton), skeleton.num_edges())
        self.sup_sepsets = dict()
        self.trivial = False
        self.sepsets = SepsetsGreedy(skeleton, self.ci_tester, self.depth, self.verbose)

        fas = FastAdjacencySearch(self.ci_tester, skeleton, knowledge=self.knowledge, verbose=self.verbose)
        graph = fas.search()
        graph.reorient_all_with(CIRCLE)
        FciOrient(self.sepsets, self.knowledge).orient_bk(graph)

        self.modified_r0(graph)
        self.step_d(graph)
        if self.step_e(graph):
            return graph
        self.step_f(graph)

        if self.apply_r1:
            for node in graph.nodes:
                self.orient_r1(node, graph, [])
        self.logger.info('Finishing CCD with %d edges.', graph.num_edges())
        return graph

    def _replace_directed(self, graph: PAG, x, y):
        """x --> y, keeping locked marks"""
        graph.set_endpoint(y, x, TAIL)
        graph.set_endpoint(x, y, ARROW)
        self.logger.debug('%s', graph.edge(x, y))

    def _replace_undirected(self, graph: PAG, x, y):
        """x --- y, keeping locked marks"""
        graph.set_endpoint(y, x, TAIL)
        graph.set_endpoint(x, y, TAIL)
        self.logger.debug('%s', graph.edge(x, y))

    def modified_r0(self, graph: PAG):
        """Orient a --> b <-- c if b is not in the separating set of a and c, and a and c are dependent given b.
        Otherwise, underline <a, b, c>."""
        for b in graph.nodes:
            adj = graph.adj(b)
            if len(adj) < 2:
                continue
            for i, j in ChoiceGenerator(len(adj), 2):
                a, c = adj[i], adj[j]
                if graph.is_adj(a, c):
                    continue
                sepset = self.sepsets.sepset(a, c)
                if sepset is not None and b not in sepset and not self.sepsets.is_independent(a, c, [b]):
                    self._replace_directed(graph, a, b)
                    self._replace_directed(graph, c, b)
                else:
                    graph.add_underline_triple(a, b, c)

    @staticmethod
    def local(graph: PAG, z) -> typing.List:
        """Nodes adjacent to z or forming a definite collider with z"""
        nodes = graph.nodes
        local = []
        for x in nodes:
            if x is z:
                continue
            if graph.is_adj(z, x) or any(graph.is_def_collider(x, y, z) for y in nodes if y is not z and y is not x):
                local.append(x)
        return local

    def _step_d_candidates(self, graph: PAG, local):
        """(a, b, c, Local(a) minus the separating set of a and c, b and c) for eligible colliders a --> b <-- c"""
        for b in graph.nodes:
            adj = graph.adj(b)
            if len(adj) < 2:
                continue
            for i, j in ChoiceGenerator(len(adj), 2):
                a, c = adj[i], adj[j]
                if graph.is_adj(a, c) or graph.is_underline_triple(a, b, c) or not graph.is_def_collider(a, b, c):
                    continue
                sepset = self.sepsets.sepset(a, c)
                if sepset is None:
                    continue
                rest = [v for v in local[a] if v not in sepset and v is not b and v is not c]
                yield a, b, c, sepset, rest

    def step_d(self, graph: PAG):
        """Find supplementary separating sets for colliders and mark them as dotted-underlined triples"""
        self.logger.info('Step D')
        m = 1
        while True:
            local = {v: self.local(graph, v) for v in graph.nodes}
            candidates = list(self._step_d_candidates(graph, local))
            if not any(len(rest) >= m for *_, rest in candidates):
                break

            for a, b, c, sepset, rest in candidates:
                if SymTriple(a, b, c) in self.sup_sepsets or len(rest) < m:
                    continue
                for ts in choices(rest, m):
                    cond = ordered_unique(ts + [b] + list(sepset))
                    if self.sepsets.is_independent(a, c, cond):
                        self.sup_sepsets[SymTriple(a, b, c)] = cond
                        graph.add_dotted_underline_triple(a, b, c)
                        self.logger.debug('dotted underline: %s given %s', SymTriple(a, b, c),
                                          ', '.join(str(v) for v in cond))
                        break
            m += 1

    def step_e(self, graph: PAG) -> bool:
        """Orient the edges between b and the neighbors of a for each dotted-underlined <a, b, c>

        Returns
        -------
        True if the graph has too few nodes for the remaining steps to apply.
        """
        self.logger.info('Step E')
        if len(graph) < 4:
            self.trivial = True
            return True

        for triple, sup_sepset in self.sup_sepsets.items():
            if triple not in graph.dotted_underlines:
                continue
            a, b, _ = triple
            for d in graph.adj(a):
                if d is b or graph.endpoint(b, d) != CIRCLE:
                    continue
                if d in sup_sepset:
                    graph.set_endpoint(b, d, TAIL)
                elif graph.endpoint(d, b) != ARROW:
                    self._replace_directed(graph, b, d)
        return False

    def step_f(self, graph: PAG):
        """Orient b --> d for each dotted-underlined <a, b, c> and d adjacent to exactly one of a and c if a and c are
        dependent given the supplementary separating set and d"""
        self.logger.info('Step F')
        for triple, sup_sepset in self.sup_sepsets.items():
            if triple not in graph.dotted_underlines:
                continue
            a, b, c = triple
            for d in ordered_unique(graph.adj(a) + graph.adj(c)):
                if graph.endpoint(b, d) != CIRCLE or graph.endpoint(d, b) == ARROW:
                    continue
                if graph.is_adj(a, d) and graph.is_adj(c, d):
                    continue
                cond = ordered_unique(list(sup_sepset) + [d])
                if not self.sepsets.is_independent(a, c, cond):
                    self._replace_directed(graph, b, d)

    def orient_r1(self, b, graph: PAG, path: typing.List) -> bool:
        """Apply R1 recursively from b along the edges it orients

        Returns
        -------
        False if the orientation reached a node already on `path`. Each edge oriented on the way back is then
        made undirected.
        """
        if b in path:
            return False
        adj = graph.adj(b)
        if len(adj) < 2:
            return True

        path.append(b)
        try:
            for i, j in ChoiceGenerator(len(adj), 2):
                a, c = adj[i], adj[j]
                if self._rule_r1(a, b, c, graph) and not self.orient_r1(c, graph, path):
                    self._replace_undirected(graph, b, c)
                    return False
                if self._rule_r1(c, b, a, graph) and not self.orient_r1(a, graph, path):
                    self._replace_undirected(graph, b, a)
                    return False
            return True
        finally:
            path.pop()

    def _rule_r1(self, a, b, c, graph: PAG) -> bool:
        """a *-> b o-* c, <a, b, c> underlined, and no <b, c, n> underlined ==> b --> c"""
        if graph.is_adj(a, c):
            return False
        if graph.endpoint(a, b) != ARROW or graph.endpoint(c, b) != CIRCLE:
            return False
        if not graph.is_underline_triple(a, b, c):
            return False
        if any(graph.is_underline_triple(b, c, n) for n in graph.adj(c) if n is not b):
            return False
        self._replace_directed(graph, b, c)
        return graph.is_directed(b, c)

import logging
import typing

from pypag.graphs import PAG
from pypag.independence import CIQuery, CITester
from pypag.utils import LRUCache, choices


class SepsetMap:
    """Separating sets keyed by unordered pairs of nodes. `None` records that no separating set was found."""

    def __init__(self):
        self._sepsets = dict()

    def set(self, x, y, sepset):
        self._sepsets[frozenset((x, y))] = None if sepset is None else list(sepset)

    def get(self, x, y) -> typing.Optional[typing.List]:
        return self._sepsets.get(frozenset((x, y)))

    def has(self, x, y) -> bool:
        return frozenset((x, y)) in self._sepsets

    def pairs(self):
        return [tuple(pair) for pair in self._sepsets]

    def __len__(self):
        return len(self._sepsets)


class SepsetProducer:
    """Abstract class for finding separating sets with a conditional independence tester"""

    def __init__(self, ci_tester: CITester, verbose=False, cache_size=2 ** 16):
        if ci_tester is None:
            raise TypeError('a conditional independence tester is required')
        self.ci_tester = ci_tester
        self.verbose = verbose
        self.logger = logging.getLogger(self.__class__.__module__ + '.' + self.__class__.__name__)
        self._ci_cache = LRUCache(cache_size)

    def sepset(self, a, c) -> typing.Optional[typing.List]:
        """A separating set of a and c or None if none is found"""
        raise NotImplementedError()

    def is_independent(self, a, c, cond) -> bool:
        query = CIQuery(a, c, cond)
        return self._ci_cache.lazy(query, self._ci_test, a, c, tuple(cond))

    def _ci_test(self, a, c, cond) -> bool:
        ci_result = self.ci_tester.ci_test(a, c, cond)
        if self.verbose:
            if self.ci_tester.is_p_value_available:
                print('p={}\t{}'.format(ci_result.p, ci_result))
            else:
                print('p=unknown\t{}'.format(ci_result))
        self.logger.debug('%s', ci_result)
        return bool(ci_result)

    @property
    def sample_size(self) -> int:
        return self.ci_tester.sample_size


def _validate_depth(depth):
    if depth < -1:
        raise ValueError('Depth must be -1 (unlimited) or >= 0: {}'.format(depth))


class SepsetsGreedy(SepsetProducer):
    """Searches separating sets among the adjacencies of a and of c in a reference graph

    Conditioning sets are tried in increasing size. For each size, subsets of adj(a) are tried before subsets of
    adj(c), each in lexicographic order. The first separating set found is returned.
    """

    def __init__(self, graph: PAG, ci_tester: CITester, depth: int = -1, verbose=False):
        _validate_depth(depth)
        super().__init__(ci_tester, verbose)
        self.graph = graph
        self.depth = depth
        self.sepsets = SepsetMap()

    def sepset(self, a, c) -> typing.Optional[typing.List]:
        if not self.sepsets.has(a, c):
            self.sepsets.set(a, c, self._search(a, c))
        return self.sepsets.get(a, c)

    def _search(self, a, c):
        adj_a = [v for v in self.graph.adj(a) if v is not c]
        adj_c = [v for v in self.graph.adj(c) if v is not a]
        max_size = max(len(adj_a), len(adj_c))
        if self.depth != -1:
            max_size = min(max_size, self.depth)

        for size in range(max_size + 1):
            for candidates in (adj_a, adj_c):
                if size > len(candidates):
                    continue
                for cond in choices(candidates, size):
                    if self.is_independent(a, c, cond):
                        return cond
        return None


class SepsetsExhaustive(SepsetProducer):
    """Searches separating sets among all the other variables, smaller sets first"""

    def __init__(self, variables, ci_tester: CITester, depth: int = -1, verbose=False):
        _validate_depth(depth)
        super().__init__(ci_tester, verbose)
        self.variables = list(variables)
        self.depth = depth
        self.sepsets = SepsetMap()

    def sepset(self, a, c) -> typing.Optional[typing.List]:
        if not self.sepsets.has(a, c):
            self.sepsets.set(a, c, self._search(a, c))
        return self.sepsets.get(a, c)

    def _search(self, a, c):
        candidates = [v for v in self.variables if v is not a and v is not c]
        max_size = len(candidates) if self.depth == -1 else min(len(candidates), self.depth)
        for size in range(max_size + 1):
            for cond in choices(candidates, size):
                if self.is_independent(a, c, cond):
                    return cond
        return None


class SepsetsSet(SepsetProducer):
    """Separating sets given in advance, e.g., those recorded by an adjacency search"""

    def __init__(self, sepsets: SepsetMap, ci_tester: CITester, verbose=False):
        super().__init__(ci_tester, verbose)
        self.sepsets = sepsets

    def sepset(self, a, c) -> typing.Optional[typing.List]:
        return self.sepsets.get(a, c)

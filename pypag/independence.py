import typing
from collections import deque

import networkx as nx
import numpy as np
from scipy.stats import chi2, norm

from pypag.domain import Node


class CIQuery:
    """Conditional independence query"""

    def __init__(self, x, y, zs):
        self.pair = frozenset({x, y})
        self.conds = frozenset(zs)

    def __eq__(self, other):
        return isinstance(other, CIQuery) and self.pair == other.pair and self.conds == other.conds

    def __hash__(self):
        return hash(self.pair) ^ hash(self.conds)

    def __str__(self):
        x, y = sorted(str(v) for v in self.pair)
        zs = ', '.join(sorted(str(z) for z in self.conds))
        return x + " _||_ " + y + " | {" + zs + "}"


class CITestResult:
    """Conditional independence test result"""

    def __init__(self, query, ci: bool, p=None):
        self.query = query
        self.ci = bool(ci)
        self.p = p

    def __hash__(self):
        return hash(self.query) ^ hash(self.ci) ^ hash(self.p)

    def __bool__(self):
        return self.ci

    def __str__(self):
        if self.p is not None:
            return "{}: {} with p={:.4f}".format(self.query, "independent" if self.ci else "dependent", self.p)
        else:
            return "{}: {}".format(self.query, "independent" if self.ci else "dependent")


class CITester:
    """Abstract class for conditional independence tester"""

    def __init__(self, variables=(), alpha: float = 0.05):
        """

        Parameters
        ----------
        variables:
            nodes the tester can answer queries about
        alpha:
            significance level
        """
        if not 0.0 < alpha < 1.0:
            raise ValueError('alpha must be in (0, 1): {}'.format(alpha))
        self.variables = list(variables)
        self.alpha = alpha

    def ci_test(self, x, y, zs=tuple(), **options) -> CITestResult:
        """ X _||_ Y | Zs """
        raise NotImplementedError()

    def is_independent(self, x, y, zs=tuple()) -> bool:
        return bool(self.ci_test(x, y, tuple(zs)))

    @property
    def sample_size(self) -> int:
        raise NotImplementedError()

    @property
    def is_p_value_available(self):
        raise NotImplementedError()


class UnvisitedQueue:
    """A queue that accept only previously un-queued items."""

    def __init__(self, iterable=()):
        self.visited = set(iterable)
        self.queue = deque(self.visited)

    def put(self, x):
        if x not in self.visited:
            self.visited.add(x)
            self.queue.append(x)

    def puts(self, xs):
        for x in xs:
            self.put(x)

    def __len__(self):
        return len(self.queue)

    def pop(self):
        return self.queue.popleft()

    def __bool__(self):
        return bool(self.queue)


def d_separated(dag: nx.DiGraph, x, y, zs=frozenset()) -> bool:
    """A simple implementation of d-separation. """
    assert x != y
    assert x not in zs and y not in zs

    qq = UnvisitedQueue(((x, '>'), (x, '<')))
    while qq:
        node, direction = qq.pop()
        if direction == '>':
            if node not in zs:
                qq.puts((ch, '>') for ch in dag.successors(node))
            else:
                qq.puts((pa, '<') for pa in dag.predecessors(node))

        else:  # '<'
            if node not in zs:
                qq.puts((ch, '>') for ch in dag.successors(node))
                qq.puts((pa, '<') for pa in dag.predecessors(node))

        if {(y, '>'), (y, '<')} & qq.visited:
            return False

    return True


class DSeparationOracle(CITester):
    """Answers queries with d-separation in a known DAG, which may contain latent nodes.

    Notes
    -----
    Only `observed` nodes (all nodes by default) are exposed as `variables`.
    """

    def __init__(self, dag: nx.DiGraph, observed=None):
        if not nx.is_directed_acyclic_graph(dag):
            raise ValueError('not a directed acyclic graph')
        super().__init__(observed if observed is not None else dag.nodes)
        unknown = [v for v in self.variables if v not in dag]
        if unknown:
            raise ValueError('unknown observed node(s): {}'.format(', '.join(str(v) for v in unknown)))
        self.dag = dag
        self.n_queries = 0

    def ci_test(self, x, y, zs=tuple(), **options) -> CITestResult:
        self.n_queries += 1
        return CITestResult(CIQuery(x, y, zs), d_separated(self.dag, x, y, frozenset(zs)))

    @property
    def sample_size(self) -> int:
        return 0

    @property
    def is_p_value_available(self):
        return False


class DataCITester(CITester):
    """A statistical tester over a data matrix whose columns correspond to `variables`"""

    def __init__(self, data: np.ndarray, variables: typing.Sequence[Node], alpha: float = 0.05):
        data = np.asarray(data)
        if data.ndim != 2:
            raise TypeError('not a matrix')
        if data.shape[1] != len(variables):
            raise ValueError('{} columns for {} variables'.format(data.shape[1], len(variables)))
        super().__init__(variables, alpha)
        self.data = data
        self._column = {v: i for i, v in enumerate(self.variables)}

    def columns(self, xs) -> typing.List[int]:
        return [self._column[x] for x in xs]

    def p_value(self, x, y, zs) -> float:
        raise NotImplementedError()

    def ci_test(self, x, y, zs=tuple(), **options) -> CITestResult:
        p = self.p_value(x, y, tuple(zs))
        return CITestResult(CIQuery(x, y, zs), p > self.alpha, p)

    @property
    def sample_size(self) -> int:
        return self.data.shape[0]

    @property
    def is_p_value_available(self):
        return True


class FisherZTester(DataCITester):
    """Fisher's z-test of vanishing partial correlation for continuous data"""

    def __init__(self, data, variables, alpha: float = 0.05):
        super().__init__(np.asarray(data, dtype=float), variables, alpha)
        self.corr = np.corrcoef(self.data, rowvar=False)

    def p_value(self, x, y, zs) -> float:
        n = self.sample_size
        # too few samples to reject independence
        if n - len(zs) - 3 <= 0:
            return 1.0
        idx = self.columns((x, y) + tuple(zs))
        sub = self.corr[np.ix_(idx, idx)]
        prec = np.linalg.pinv(sub)
        r = -prec[0, 1] / np.sqrt(prec[0, 0] * prec[1, 1])
        r = np.clip(r, -0.999999, 0.999999)
        z = 0.5 * np.log((1 + r) / (1 - r))
        stat = np.sqrt(n - len(zs) - 3) * abs(z)
        return float(2 * (1 - norm.cdf(stat)))


class GSquareTester(DataCITester):
    """G-square test of conditional independence for discrete data"""

    def __init__(self, data, variables, alpha: float = 0.05):
        super().__init__(np.asarray(data), variables, alpha)
        # recode each column to 0, ..., levels - 1
        codes = np.empty(self.data.shape, dtype=int)
        self.levels = []
        for j in range(self.data.shape[1]):
            values, codes[:, j] = np.unique(self.data[:, j], return_inverse=True)
            self.levels.append(len(values))
        self.codes = codes

    def p_value(self, x, y, zs) -> float:
        ix, iy = self.columns((x, y))
        izs = self.columns(zs)
        if izs:
            _, strata = np.unique(self.codes[:, izs], axis=0, return_inverse=True)
            strata = np.asarray(strata).reshape(-1)
        else:
            strata = np.zeros(self.sample_size, dtype=int)

        g2, df = 0.0, 0
        for s in np.unique(strata):
            rows = strata == s
            table = np.zeros((self.levels[ix], self.levels[iy]))
            np.add.at(table, (self.codes[rows, ix], self.codes[rows, iy]), 1)
            table = table[table.sum(axis=1) > 0][:, table.sum(axis=0) > 0]
            if table.size == 0:
                continue
            expected = np.outer(table.sum(axis=1), table.sum(axis=0)) / table.sum()
            nonzero = table > 0
            g2 += 2 * np.sum(table[nonzero] * np.log(table[nonzero] / expected[nonzero]))
            df += (table.shape[0] - 1) * (table.shape[1] - 1)

        if df == 0:
            return 1.0
        return float(chi2.sf(g2, df))


def is_discrete_column(column: np.ndarray) -> bool:
    column = np.asarray(column)
    if column.dtype.kind in 'biuOSU':
        return True
    return column.dtype.kind == 'f' and bool(np.all(np.isfinite(column))) and bool(np.all(column == np.round(column)))


def make_ci_tester(data, names=None, alpha: float = 0.05) -> DataCITester:
    """A default tester for the given data: Fisher's z-test for continuous data, G-square for discrete data.

    Parameters
    ----------
    data : array_like
        samples by variables
    names : names of the variables, `X1, X2, ...` if not given

    Raises
    ------
    ValueError
        if some columns are discrete and the others continuous
    """
    data = np.asarray(data)
    if data.ndim != 2:
        raise TypeError('not a matrix')
    if names is None:
        names = ['X' + str(i + 1) for i in range(data.shape[1])]
    variables = [Node(name) for name in names]

    discrete = [is_discrete_column(data[:, j]) for j in range(data.shape[1])]
    if all(discrete):
        return GSquareTester(data, variables, alpha)
    if not any(discrete):
        return FisherZTester(data, variables, alpha)
    raise ValueError('Mixed data not supported.')

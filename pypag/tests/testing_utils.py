import networkx as nx
import numpy as np

from pypag.domain import nodes_of
from pypag.independence import DSeparationOracle, CITester, CITestResult, CIQuery


def dag_of(nodes, directed_edges) -> nx.DiGraph:
    dag = nx.DiGraph()
    dag.add_nodes_from(nodes)
    dag.add_edges_from(directed_edges)
    return dag


def collider_dag():
    """A --> B <-- C"""
    A, B, C = nodes_of('A', 'B', 'C')
    return (A, B, C), dag_of((A, B, C), [(A, B), (C, B)])


def chain_dag():
    """A --> B --> C"""
    A, B, C = nodes_of('A', 'B', 'C')
    return (A, B, C), dag_of((A, B, C), [(A, B), (B, C)])


def diamond_dag():
    """A --> B <-- C and A --> D <-- C"""
    A, B, C, D = nodes_of('A', 'B', 'C', 'D')
    return (A, B, C, D), dag_of((A, B, C, D), [(A, B), (C, B), (A, D), (C, D)])


def y_structure_dag():
    """A --> C <-- B, C --> D"""
    A, B, C, D = nodes_of('A', 'B', 'C', 'D')
    return (A, B, C, D), dag_of((A, B, C, D), [(A, C), (B, C), (C, D)])


def latent_confounder_dag():
    """A --> B <-- L --> C <-- D with L latent"""
    A, B, C, D, L = nodes_of('A', 'B', 'C', 'D', 'L')
    return (A, B, C, D), L, dag_of((A, B, C, D, L), [(A, B), (L, B), (L, C), (D, C)])


def random_dag(n, p=0.3, seed=None):
    """A random DAG whose edges follow the order of its nodes"""
    rng = np.random.RandomState(seed)
    vs = nodes_of(*['X' + str(i + 1) for i in range(n)])
    edges = [(vs[i], vs[j]) for i in range(n) for j in range(i + 1, n) if rng.rand() < p]
    return vs, dag_of(vs, edges)


def oracle_of(dag, observed=None) -> DSeparationOracle:
    return DSeparationOracle(dag, observed)


def linear_gaussian_data(dag: nx.DiGraph, nodes, n_samples=2000, seed=None):
    """Samples of a linear Gaussian model over the DAG, columns in the order of `nodes`"""
    rng = np.random.RandomState(seed)
    values = dict()
    for v in nx.topological_sort(dag):
        values[v] = rng.normal(size=n_samples)
        for parent in dag.predecessors(v):
            values[v] += rng.uniform(0.8, 1.5) * values[parent]
    return np.column_stack([values[v] for v in nodes])


class FixedCITester(CITester):
    """Independent exactly for the given queries. Queries are recorded in `queries`."""

    def __init__(self, variables, independent=()):
        super().__init__(variables)
        self.independent = set(independent)
        self.queries = []

    def ci_test(self, x, y, zs=tuple(), **options):
        query = CIQuery(x, y, zs)
        self.queries.append(query)
        return CITestResult(query, query in self.independent)

    @property
    def sample_size(self):
        return 0

    @property
    def is_p_value_available(self):
        return False

import pytest

from pypag.domain import nodes_of, Knowledge
from pypag.graphs import PAG, Endpoint, SymTriple
from pypag.independence import CIQuery, make_ci_tester
from pypag.search import GFCI, FCI, CCD
from pypag.sepsets import SepsetsSet, SepsetMap
from pypag.tests.testing_utils import FixedCITester, dag_of, collider_dag, chain_dag, y_structure_dag, \
    latent_confounder_dag, random_dag, linear_gaussian_data, oracle_of

TAIL, ARROW, CIRCLE = Endpoint.TAIL, Endpoint.ARROW, Endpoint.CIRCLE


def test_validation():
    (A, B, C), dag = chain_dag()
    oracle = oracle_of(dag)
    with pytest.raises(TypeError):
        GFCI(None)
    with pytest.raises(TypeError):
        FCI(oracle, knowledge={'required': []})
    with pytest.raises(ValueError):
        GFCI(oracle, max_cond_size=-2)
    with pytest.raises(ValueError):
        GFCI(oracle, max_path_length=-2)
    with pytest.raises(ValueError):
        FCI(oracle, depth=-2)
    with pytest.raises(ValueError):
        CCD(oracle, depth=-5)


def test_fci_collider_and_chain():
    (A, B, C), dag = collider_dag()
    fci = FCI(oracle_of(dag))
    g = fci.search()
    assert str(g.edge(A, B)) == 'A o-> B'
    assert str(g.edge(C, B)) == 'C o-> B'
    assert not g.is_adj(A, C)
    assert fci.elapsed_time >= 0

    (A, B, C), dag = chain_dag()
    g = FCI(oracle_of(dag)).search()
    assert g.count_endpoints(CIRCLE) == 4


def test_fci_y_structure():
    (A, B, C, D), dag = y_structure_dag()
    g = FCI(oracle_of(dag), complete_rule_set=True).search()
    assert g.is_def_collider(A, C, B)
    assert g.is_directed(C, D)


def test_fci_latent_confounder():
    (A, B, C, D), L, dag = latent_confounder_dag()
    g = FCI(oracle_of(dag, [A, B, C, D])).search()
    assert str(g.edge(A, B)) == 'A o-> B'
    assert str(g.edge(B, C)) == 'B <-> C'
    assert str(g.edge(D, C)) == 'D o-> C'
    assert g.num_edges() == 3


def test_fci_knowledge():
    (A, B, C), dag = chain_dag()
    g = FCI(oracle_of(dag), knowledge=Knowledge(required=[('A', 'B')])).search()
    assert g.is_directed(A, B)
    assert g.is_locked(A, B) and g.is_locked(B, A)


def test_fci_with_data():
    (A, B, C, D), dag = y_structure_dag()
    data = linear_gaussian_data(dag, [A, B, C, D], n_samples=5000, seed=3)
    tester = make_ci_tester(data, names=['A', 'B', 'C', 'D'], alpha=0.001)
    g = FCI(tester).search()
    a, b, c, d = (g.node(name) for name in 'ABCD')
    assert g.num_edges() == 3
    assert g.is_def_collider(a, c, b)
    assert g.is_directed(c, d)


def test_fci_with_few_samples():
    (A, B, C, D), dag = y_structure_dag()
    data = linear_gaussian_data(dag, [A, B, C, D], n_samples=5, seed=1)
    g = FCI(make_ci_tester(data, names=['A', 'B', 'C', 'D'])).search()
    assert len(g) == 4


def test_gfci_keeps_reference_colliders():
    (A, B, C), dag = collider_dag()
    skeleton = PAG.from_networkx_dag(dag)
    gfci = GFCI(oracle_of(dag))
    g = gfci.search(skeleton)
    assert str(g.edge(A, B)) == 'A o-> B'
    assert str(g.edge(C, B)) == 'C o-> B'
    # the skeleton is left as it is
    assert skeleton.is_directed(A, B)


def test_gfci_prunes_shielded_pairs():
    (A, B, C), dag = chain_dag()
    skeleton = PAG.from_networkx_dag(dag)
    skeleton.add_directed_edge(A, C)
    g = GFCI(oracle_of(dag)).search(skeleton)
    assert not g.is_adj(A, C)
    assert g.count_endpoints(CIRCLE) == 4

    (A, B, C), dag = collider_dag()
    skeleton = PAG.from_networkx_dag(dag)
    skeleton.add_directed_edge(A, C)
    g = GFCI(oracle_of(dag)).search(skeleton)
    assert not g.is_adj(A, C)
    assert g.is_def_collider(A, B, C)


def test_gfci_keeps_required_edges():
    (A, B, C), dag = chain_dag()
    skeleton = PAG.from_networkx_dag(dag)
    skeleton.add_directed_edge(A, C)
    g = GFCI(oracle_of(dag), knowledge=Knowledge(required=[('A', 'C')])).search(skeleton)
    assert g.is_adj(A, C)
    assert g.is_directed(A, C)
    assert g.is_locked(A, C) and g.is_locked(C, A)


def test_gfci_empty_graph():
    g = GFCI(oracle_of(dag_of([], []))).search(PAG())
    assert len(g) == 0
    assert g.num_edges() == 0


def test_gfci_random():
    for seed in range(5):
        vs, dag = random_dag(8, 0.3, seed)
        oracle = oracle_of(dag)
        gfci = GFCI(oracle, complete_rule_set=True)
        g = gfci.search(PAG.from_networkx_dag(dag))
        assert {frozenset(e) for e in g.edges()} == {frozenset(e) for e in dag.edges}
        assert len(gfci.orienter.changes) <= 2 * g.num_edges()
        # arrowheads are sound for the true DAG
        for e in g.edges():
            for x, y in ((e.node1, e.node2), (e.node2, e.node1)):
                if g.endpoint(x, y) == ARROW:
                    assert dag.has_edge(x, y)


def test_ccd_collider():
    (A, B, C), dag = collider_dag()
    ccd = CCD(oracle_of(dag))
    g = ccd.search(PAG([A, B, C], [(A, B), (B, C)]))
    assert g.is_directed(A, B)
    assert g.is_directed(C, B)
    assert ccd.trivial


def test_ccd_chain():
    (A, B, C), dag = chain_dag()
    ccd = CCD(oracle_of(dag))
    g = ccd.search(PAG([A, B, C], [(A, B), (B, C)]))
    assert g.count_endpoints(CIRCLE) == 4
    assert g.is_underline_triple(A, B, C)


def test_ccd_empty_graph():
    ccd = CCD(oracle_of(dag_of([], [])))
    g = ccd.search(PAG())
    assert g.num_edges() == 0
    assert ccd.trivial


def _diamond():
    A, B, C, D = nodes_of('A', 'B', 'C', 'D')
    skeleton = PAG([A, B, C, D], [(A, B), (C, B), (A, D), (C, D)])
    tester = FixedCITester([A, B, C, D], [CIQuery(A, C, []), CIQuery(B, D, [A, C]), CIQuery(A, C, [B, D])])
    return (A, B, C, D), skeleton, tester


def test_ccd_diamond_dotted_underlines():
    (A, B, C, D), skeleton, tester = _diamond()
    ccd = CCD(tester)
    g = ccd.search(skeleton)
    assert not ccd.trivial
    assert g.is_directed(A, B) and g.is_directed(C, B)
    assert g.is_directed(A, D) and g.is_directed(C, D)
    assert g.is_underline_triple(B, A, D)
    assert g.is_underline_triple(B, C, D)
    assert g.is_dotted_underline_triple(A, B, C)
    assert g.is_dotted_underline_triple(A, D, C)
    assert set(ccd.sup_sepsets[SymTriple(A, B, C)]) == {B, D}
    assert set(ccd.sup_sepsets[SymTriple(C, D, A)]) == {B, D}


def test_ccd_local():
    (A, B, C, D), skeleton, tester = _diamond()
    g = CCD(tester).search(skeleton)
    assert CCD.local(g, A) == [B, C, D]
    assert CCD.local(g, B) == [A, C]


def test_ccd_knowledge():
    (A, B, C), dag = collider_dag()
    g = CCD(oracle_of(dag), Knowledge(required=[('B', 'A')])).search(PAG([A, B, C], [(A, B), (B, C)]))
    assert g.is_directed(B, A)
    assert g.is_directed(C, B)


def test_ccd_step_e():
    A, B, C, D, E = nodes_of('A', 'B', 'C', 'D', 'E')
    g = PAG([A, B, C, D, E])
    g.add_directed_edge(A, B)
    g.add_directed_edge(C, B)
    for x, y in [(A, D), (B, D), (A, E), (B, E)]:
        g.add_nondirected_edge(x, y)
    g.add_dotted_underline_triple(A, B, C)

    ccd = CCD(FixedCITester(g.nodes))
    ccd.sup_sepsets = {SymTriple(A, B, C): [D, B]}
    assert not ccd.step_e(g)
    assert g.endpoint(B, D) == TAIL
    assert g.endpoint(D, B) == CIRCLE
    assert g.is_directed(B, E)


def test_ccd_step_f():
    A, B, C, D, E = nodes_of('A', 'B', 'C', 'D', 'E')
    g = PAG([A, B, C, D, E])
    g.add_directed_edge(A, B)
    g.add_directed_edge(C, B)
    for x, y in [(C, D), (B, D), (A, E), (B, E)]:
        g.add_nondirected_edge(x, y)
    g.add_dotted_underline_triple(A, B, C)

    tester = FixedCITester(g.nodes, [CIQuery(A, C, [B]), CIQuery(A, C, [B, E])])
    ccd = CCD(tester)
    ccd.sepsets = SepsetsSet(SepsetMap(), tester)
    ccd.sup_sepsets = {SymTriple(A, B, C): [B]}
    ccd.step_f(g)
    assert g.is_directed(B, D)
    assert g.endpoint(B, E) == CIRCLE
    assert g.endpoint(E, B) == CIRCLE


def test_ccd_trivial_graph_skips_later_steps():
    A, B, C = nodes_of('A', 'B', 'C')
    g = PAG([A, B, C])
    ccd = CCD(FixedCITester(g.nodes))
    assert ccd.step_e(g)
    assert ccd.trivial


def test_ccd_r1_triangle_terminates():
    A, B, C = nodes_of('A', 'B', 'C')
    g = PAG([A, B, C], [(A, B), (B, C), (A, C)])
    for triple in [(A, B, C), (B, C, A), (C, A, B)]:
        g.add_underline_triple(*triple)
    before = g.copy()
    ccd = CCD(FixedCITester(g.nodes))
    for v in g.nodes:
        assert ccd.orient_r1(v, g, [])
    assert g.edges() == before.edges()


def test_ccd_r1_propagates():
    X, B, C = nodes_of('X', 'B', 'C')
    g = PAG([X, B, C])
    g.add_partially_oriented_edge(X, B)
    g.add_nondirected_edge(B, C)
    g.add_underline_triple(X, B, C)
    path = []
    assert CCD(FixedCITester(g.nodes)).orient_r1(B, g, path)
    assert g.is_directed(B, C)
    assert path == []


def test_ccd_r1_cycle_is_undone():
    X, B, C, Y, D, W = nodes_of('X', 'B', 'C', 'Y', 'D', 'W')
    g = PAG([X, B, C, Y, D, W])
    g.add_partially_oriented_edge(X, B)
    g.add_nondirected_edge(B, C)
    g.add_partially_oriented_edge(Y, C)
    g.add_nondirected_edge(C, D)
    g.add_partially_oriented_edge(W, D)
    g.add_nondirected_edge(D, B)
    assert g.adj(B) == [X, C, D]
    assert g.adj(C) == [B, Y, D]
    assert g.adj(D) == [C, W, B]
    for triple in [(X, B, C), (Y, C, D), (W, D, B)]:
        g.add_underline_triple(*triple)

    path = []
    assert not CCD(FixedCITester(g.nodes)).orient_r1(B, g, path)
    assert path == []
    assert g.is_undirected(B, C)
    assert g.is_undirected(C, D)
    assert g.is_undirected(D, B)
    assert str(g.edge(X, B)) == 'X o-> B'


def test_ccd_without_r1():
    # X --> B <-- Y, B --> C
    X, Y, B, C = nodes_of('X', 'Y', 'B', 'C')
    dag = dag_of([X, Y, B, C], [(X, B), (Y, B), (B, C)])
    skeleton = PAG([X, Y, B, C], [(X, B), (Y, B), (B, C)])
    g = CCD(oracle_of(dag), apply_r1=False).search(skeleton)
    assert g.is_def_collider(X, B, Y)
    assert g.is_underline_triple(X, B, C)
    assert g.endpoint(B, C) == CIRCLE

    skeleton = PAG([X, Y, B, C], [(X, B), (Y, B), (B, C)])
    g = CCD(oracle_of(dag)).search(skeleton)
    assert g.is_directed(B, C)

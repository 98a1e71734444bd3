import logging
import typing
from collections import deque

from pypag.domain import Knowledge
from pypag.graphs import PAG, Endpoint
from pypag.sepsets import SepsetProducer
from pypag.utils import ChoiceGenerator

TAIL, ARROW, CIRCLE = Endpoint.TAIL, Endpoint.ARROW, Endpoint.CIRCLE


def uncovered_paths(g: PAG, start, end, edge_ok) -> typing.Iterator[typing.List]:
    """Simple paths from `start` to `end` whose consecutive triples are all unshielded

    Parameters
    ----------
    edge_ok : callable
        `edge_ok(u, v)` tells whether the path may traverse the edge from u to v
    """

    def extend(path):
        last = path[-1]
        for v in g.adj(last):
            if v in path or not edge_ok(last, v):
                continue
            if len(path) >= 2 and g.is_adj(path[-2], v):
                continue
            if v is end:
                yield path + [v]
            else:
                yield from extend(path + [v])

    if start is not end:
        yield from extend([start])


def is_circle_edge(g: PAG, u, v) -> bool:
    """u o-o v"""
    return g.endpoint(u, v) == CIRCLE and g.endpoint(v, u) == CIRCLE


def is_potentially_directed(g: PAG, u, v) -> bool:
    """The edge between u and v can be read as u --> v: no arrowhead at u and no tail at v"""
    return g.endpoint(v, u) != ARROW and g.endpoint(u, v) != TAIL


class FciOrient:
    """Orients the endpoints of a skeleton into a PAG

    Knowledge is applied first, then colliders (R0), then the propagation rules are applied until no rule changes
    the graph. R1-R4 are the rules of the original FCI [1], where R4 is the discriminating path rule.
    With `complete_rule_set`, Zhang's rules R5-R10 [2] are applied as well.

    Every rule only replaces circles, never overrides a mark locked by knowledge, and records its change in
    `changes` as `(rule, x, y, endpoint)`, where `endpoint` is the new mark at y on the edge between x and y.

    References
    ----------
    [1] Peter Spirtes, Clark Glymour, and Richard Scheines (2000),
        Causation, Prediction, and Search, 2nd edition, MIT Press
    [2] Jiji Zhang (2008),
        On the completeness of orientation rules for causal discovery in the presence of latent confounders
        and selection bias, Artificial Intelligence 172(16-17)
    """

    def __init__(self, sepsets: SepsetProducer, knowledge: Knowledge = None, complete_rule_set: bool = False,
                 max_path_length: int = -1, verbose=False):
        if max_path_length < -1:
            raise ValueError('Max path length must be -1 (unlimited) or >= 0: {}'.format(max_path_length))
        self.sepsets = sepsets
        self.knowledge = knowledge if knowledge is not None else Knowledge()
        self.complete_rule_set = complete_rule_set
        self.max_path_length = max_path_length
        self.verbose = verbose
        self.changes = []
        self.logger = logging.getLogger(self.__class__.__module__ + '.' + self.__class__.__name__)

    def orient(self, g: PAG, reference: PAG = None) -> PAG:
        """Fully orient the given skeleton in place"""
        g.reorient_all_with(CIRCLE)
        self.orient_bk(g)
        self.rule_r0(g, reference)
        self.do_final_orientation(g)
        return g

    # ------------------------------------------------------------------ guarded changes
    def _allowed(self, x, y, endpoint) -> bool:
        if endpoint == ARROW:
            return not self.knowledge.is_required(y.name, x.name)
        if endpoint == TAIL:
            return not self.knowledge.is_forbidden(y.name, x.name)
        return True

    def _orient(self, g: PAG, x, y, endpoint: Endpoint, rule: str) -> bool:
        """Replace the circle at y on the edge between x and y"""
        if g.endpoint(x, y) != CIRCLE or g.is_locked(x, y) or not self._allowed(x, y, endpoint):
            return False
        g.set_endpoint(x, y, endpoint)
        self.changes.append((rule, x, y, endpoint))
        self.logger.debug('%s: %s', rule, g.edge(x, y))
        if self.verbose:
            print('{}: orienting {}'.format(rule, g.edge(x, y)))
        return True

    def _orient_directed(self, g: PAG, x, y, rule: str) -> bool:
        """x --> y as far as the current marks allow"""
        at_x = self._orient(g, y, x, TAIL, rule)
        at_y = self._orient(g, x, y, ARROW, rule)
        return at_x or at_y

    # ------------------------------------------------------------------ knowledge
    def orient_bk(self, g: PAG):
        """Orient and lock edges according to background knowledge"""
        self.logger.info('Starting BK Orientation.')
        for x, y in Knowledge.resolve(self.knowledge.forbidden_edges(), g.nodes):
            if not g.is_adj(x, y):
                continue
            # x is not a cause of y: y *-> x
            g.set_endpoint(y, x, ARROW)
            g.set_endpoint(x, y, CIRCLE)
            g.lock(y, x)
            self.logger.debug('Knowledge: %s', g.edge(x, y))

        for x, y in Knowledge.resolve(self.knowledge.required_edges(), g.nodes):
            if not g.is_adj(x, y):
                continue
            g.set_endpoint(y, x, TAIL)
            g.set_endpoint(x, y, ARROW)
            g.lock(y, x)
            g.lock(x, y)
            self.logger.debug('Knowledge: %s', g.edge(x, y))
        self.logger.info('Finishing BK Orientation.')

    # ------------------------------------------------------------------ colliders
    def rule_r0(self, g: PAG, reference: PAG = None) -> bool:
        """Orient colliders a *-> b <-* c

        With a reference graph, definite colliders of the reference are copied and triples whose shield has been
        removed are checked against separating sets. Otherwise, every unshielded triple is checked against the
        separating set of its ends.
        """
        changed = False
        for b in g.nodes:
            adj = g.adj(b)
            if len(adj) < 2:
                continue

            for i, j in ChoiceGenerator(len(adj), 2):
                a, c = adj[i], adj[j]
                if reference is not None:
                    if reference.is_def_collider(a, b, c):
                        changed |= self._orient_collider(g, a, b, c)
                    elif reference.is_adj(a, c) and not g.is_adj(a, c):
                        changed |= self._orient_if_not_separator(g, a, b, c)
                elif not g.is_adj(a, c):
                    changed |= self._orient_if_not_separator(g, a, b, c)
        return changed

    def _orient_if_not_separator(self, g, a, b, c) -> bool:
        sepset = self.sepsets.sepset(a, c)
        if sepset is not None and b not in sepset:
            return self._orient_collider(g, a, b, c)
        return False

    def _orient_collider(self, g, a, b, c) -> bool:
        at_a = self._orient(g, a, b, ARROW, 'R0')
        at_c = self._orient(g, c, b, ARROW, 'R0')
        return at_a or at_c

    # ------------------------------------------------------------------ propagation
    def rules(self) -> typing.List[typing.Tuple[str, typing.Callable[[PAG], bool]]]:
        rules = [('R1', self.rule_r1), ('R2', self.rule_r2), ('R3', self.rule_r3), ('R4', self.rule_r4)]
        if self.complete_rule_set:
            rules += [('R5', self.rule_r5), ('R6', self.rule_r6), ('R7', self.rule_r7),
                      ('R8', self.rule_r8), ('R9', self.rule_r9), ('R10', self.rule_r10)]
        return rules

    def do_final_orientation(self, g: PAG):
        """Apply the orientation rules until none of them changes the graph"""
        rules = self.rules()
        passes = 0
        while True:
            passes += 1
            changed = False
            for name, rule in rules:
                changed |= rule(g)
            if not changed:
                break
        self.logger.info('orientation finished after %d pass(es) with %d change(s)', passes, len(self.changes))

    def rule_r1(self, g: PAG) -> bool:
        """a *-> b o-* c, a and c not adjacent ==> b --> c"""
        changed = False
        for b in g.nodes:
            adj = g.adj(b)
            for a in adj:
                if g.endpoint(a, b) != ARROW:
                    continue
                for c in adj:
                    if c is a or g.is_adj(a, c) or g.endpoint(c, b) != CIRCLE:
                        continue
                    changed |= self._orient_directed(g, b, c, 'R1')
        return changed

    def rule_r2(self, g: PAG) -> bool:
        """a --> b *-> c or a *-> b --> c, and a *-o c ==> a *-> c"""
        changed = False
        for a in g.nodes:
            for c in g.adj(a):
                if g.endpoint(a, c) != CIRCLE:
                    continue
                for b in g.adj(a):
                    if b is c or not g.is_adj(b, c):
                        continue
                    if (g.is_directed(a, b) and g.endpoint(b, c) == ARROW) or \
                            (g.endpoint(a, b) == ARROW and g.is_directed(b, c)):
                        changed |= self._orient(g, a, c, ARROW, 'R2')
                        break
        return changed

    def rule_r3(self, g: PAG) -> bool:
        """a *-> b <-* c, a *-o d o-* c, a and c not adjacent, d *-o b ==> d *-> b"""
        changed = False
        for b in g.nodes:
            adj = g.adj(b)
            if len(adj) < 3:
                continue
            for i, j in ChoiceGenerator(len(adj), 2):
                a, c = adj[i], adj[j]
                if g.is_adj(a, c) or not g.is_def_collider(a, b, c):
                    continue
                for d in adj:
                    if d is a or d is c:
                        continue
                    if g.endpoint(d, b) != CIRCLE:
                        continue
                    if g.endpoint(a, d) == CIRCLE and g.endpoint(c, d) == CIRCLE:
                        changed |= self._orient(g, d, b, ARROW, 'R3')
        return changed

    def rule_r4(self, g: PAG) -> bool:
        """Discriminating path <theta, ..., a, b, c> with b o-* c

        If b is in the separating set of theta and c, b --> c. Otherwise, a <-> b <-> c.
        """
        if self.max_path_length == 0:
            return False
        changed = False
        for b in g.nodes:
            for c in g.adj(b):
                if g.endpoint(c, b) != CIRCLE:
                    continue
                for a in g.adj(b):
                    if a is c or not g.is_adj(a, c):
                        continue
                    if g.endpoint(b, a) != ARROW or not g.is_directed(a, c):
                        continue
                    theta = self.discriminating_path_end(g, a, b, c)
                    if theta is not None:
                        changed |= self._orient_discriminated(g, theta, a, b, c)
        return changed

    def discriminating_path_end(self, g: PAG, a, b, c):
        """The far end theta of a discriminating path <theta, ..., a, b, c> for b, or None

        Vertices between theta and b must be colliders on the path and parents of c. The length of a path is
        the number of its edges, bounded by `max_path_length` unless it is -1.
        """
        limit = self.max_path_length

        # (node, number of colliders from node to a)
        queue = deque([(a, 1)])
        visited = {a, b, c}
        while queue:
            v, n_colliders = queue.popleft()
            for e in g.adj(v):
                if e in visited or g.endpoint(e, v) != ARROW:
                    continue
                if not g.is_adj(e, c):
                    if limit == -1 or n_colliders + 2 <= limit:
                        return e
                    continue
                if g.is_directed(e, c) and g.endpoint(v, e) == ARROW:
                    if limit == -1 or n_colliders + 3 <= limit:
                        visited.add(e)
                        queue.append((e, n_colliders + 1))
        return None

    def _orient_discriminated(self, g: PAG, theta, a, b, c) -> bool:
        sepset = self.sepsets.sepset(theta, c)
        if sepset is None:
            return False
        if b in sepset:
            return self._orient_directed(g, b, c, 'R4')
        at_b_from_a = self._orient(g, a, b, ARROW, 'R4')
        at_b_from_c = self._orient(g, c, b, ARROW, 'R4')
        at_c = self._orient(g, b, c, ARROW, 'R4')
        return at_b_from_a or at_b_from_c or at_c

    def rule_r5(self, g: PAG) -> bool:
        """a o-o b with an uncovered circle path <a, c, ..., d, b>, a and d not adjacent, b and c not adjacent
        ==> a --- b and every edge on the path undirected"""
        changed = False
        for a in g.nodes:
            for b in g.adj(a):
                if not is_circle_edge(g, a, b):
                    continue
                for path in uncovered_paths(g, a, b, lambda u, v: is_circle_edge(g, u, v)):
                    if len(path) < 4 or g.is_adj(a, path[-2]) or g.is_adj(b, path[1]):
                        continue
                    changed |= self._orient(g, a, b, TAIL, 'R5') | self._orient(g, b, a, TAIL, 'R5')
                    for u, v in zip(path, path[1:]):
                        changed |= self._orient(g, u, v, TAIL, 'R5') | self._orient(g, v, u, TAIL, 'R5')
                    break
        return changed

    def rule_r6(self, g: PAG) -> bool:
        """a --- b o-* c ==> b --* c"""
        changed = False
        for b in g.nodes:
            adj = g.adj(b)
            for a in adj:
                if not g.is_undirected(a, b):
                    continue
                for c in adj:
                    if c is not a and g.endpoint(c, b) == CIRCLE:
                        changed |= self._orient(g, c, b, TAIL, 'R6')
        return changed

    def rule_r7(self, g: PAG) -> bool:
        """a --o b o-* c, a and c not adjacent ==> b --* c"""
        changed = False
        for b in g.nodes:
            adj = g.adj(b)
            for a in adj:
                if g.endpoint(b, a) != TAIL or g.endpoint(a, b) != CIRCLE:
                    continue
                for c in adj:
                    if c is not a and not g.is_adj(a, c) and g.endpoint(c, b) == CIRCLE:
                        changed |= self._orient(g, c, b, TAIL, 'R7')
        return changed

    def _partially_oriented(self, g: PAG):
        """(a, c) for every a o-> c"""
        for a in g.nodes:
            for c in g.adj(a):
                if g.endpoint(c, a) == CIRCLE and g.endpoint(a, c) == ARROW:
                    yield a, c

    def rule_r8(self, g: PAG) -> bool:
        """a --> b --> c or a --o b --> c, and a o-> c ==> a --> c"""
        changed = False
        for a, c in list(self._partially_oriented(g)):
            for b in g.adj(a):
                if b is c or not g.is_directed(b, c):
                    continue
                if g.endpoint(b, a) == TAIL and g.endpoint(a, b) in (ARROW, CIRCLE):
                    changed |= self._orient(g, c, a, TAIL, 'R8')
                    break
        return changed

    def rule_r9(self, g: PAG) -> bool:
        """a o-> c with an uncovered potentially directed path <a, b, ..., c>, b and c not adjacent ==> a --> c"""
        changed = False
        for a, c in list(self._partially_oriented(g)):
            for path in uncovered_paths(g, a, c, lambda u, v: is_potentially_directed(g, u, v)):
                if len(path) < 3 or g.is_adj(path[1], c):
                    continue
                changed |= self._orient(g, c, a, TAIL, 'R9')
                break
        return changed

    def rule_r10(self, g: PAG) -> bool:
        """a o-> c, b --> c <-- d, uncovered potentially directed paths from a to b and from a to d whose second
        vertices are distinct and not adjacent ==> a --> c"""
        changed = False
        for a, c in list(self._partially_oriented(g)):
            parents = [p for p in g.pa(c) if p is not a]
            if len(parents) < 2:
                continue
            if self._r10_applies(g, a, c, parents):
                changed |= self._orient(g, c, a, TAIL, 'R10')
        return changed

    def _r10_applies(self, g: PAG, a, c, parents) -> bool:
        def pd(u, v):
            return v is not c and is_potentially_directed(g, u, v)

        firsts = {p: {path[1] for path in uncovered_paths(g, a, p, pd)} for p in parents}
        for i, j in ChoiceGenerator(len(parents), 2):
            for mu in firsts[parents[i]]:
                for omega in firsts[parents[j]]:
                    if mu is not omega and not g.is_adj(mu, omega):
                        return True
        return False

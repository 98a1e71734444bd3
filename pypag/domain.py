import itertools
import typing
from collections import defaultdict


class Node:
    """A variable of a causal graph.

    Two nodes are the same only if they are the same object, even when their names coincide."""

    def __init__(self, name: str):
        if not isinstance(name, str) or not name:
            raise ValueError('A name must be a non-empty string')
        self.name = name

    def __str__(self):
        return self.name

    def __repr__(self):
        return 'Node(' + repr(self.name) + ')'


def nodes_of(*names) -> typing.List[Node]:
    """Fresh nodes with the given names, e.g., `A, B, C = nodes_of('A', 'B', 'C')`"""
    if len(names) == 1 and not isinstance(names[0], str):
        names = tuple(names[0])
    return [Node(name) for name in names]


def _name(x) -> str:
    return x.name if isinstance(x, Node) else str(x)


class Knowledge:
    """Background knowledge in terms of variable names

    A forbidden pair (X, Y) states that X is not a cause of Y, and a required pair (X, Y) states that X is a direct
    cause of Y. Tiers impose a temporal order: a variable in a later tier cannot cause a variable in an earlier tier.
    """

    def __init__(self, forbidden=(), required=(), tiers=None):
        self._forbidden = set()
        self._required = set()
        self._tier_of = dict()
        for x, y in forbidden:
            self.set_forbidden(x, y)
        for x, y in required:
            self.set_required(x, y)
        if tiers is not None:
            for tier, names in enumerate(tiers):
                for name in names:
                    self.add_to_tier(tier, name)

    def set_forbidden(self, x, y):
        x, y = _name(x), _name(y)
        if x == y:
            raise ValueError('A variable cannot be paired with itself: {}'.format(x))
        if (x, y) in self._required:
            raise ValueError('{} --> {} is already required'.format(x, y))
        self._forbidden.add((x, y))

    def set_required(self, x, y):
        x, y = _name(x), _name(y)
        if x == y:
            raise ValueError('A variable cannot be paired with itself: {}'.format(x))
        if self.is_forbidden(x, y):
            raise ValueError('{} --> {} is already forbidden'.format(x, y))
        self._required.add((x, y))

    def remove_forbidden(self, x, y):
        self._forbidden.discard((_name(x), _name(y)))

    def remove_required(self, x, y):
        self._required.discard((_name(x), _name(y)))

    def add_to_tier(self, tier: int, x):
        if tier < 0:
            raise ValueError('A tier must be a non-negative integer: {}'.format(tier))
        x = _name(x)
        previous = self._tier_of.get(x)
        self._tier_of[x] = tier
        conflicts = sorted(p for p in self._required if self.is_forbidden(*p))
        if conflicts:
            if previous is None:
                del self._tier_of[x]
            else:
                self._tier_of[x] = previous
            raise ValueError('tier {} for {} contradicts required {} --> {}'.format(tier, x, *conflicts[0]))

    def tier(self, x) -> typing.Optional[int]:
        return self._tier_of.get(_name(x))

    @property
    def tiers(self) -> typing.List[typing.List[str]]:
        if not self._tier_of:
            return []
        grouped = defaultdict(list)
        for name, tier in self._tier_of.items():
            grouped[tier].append(name)
        return [sorted(grouped[t]) for t in range(max(grouped) + 1)]

    def is_forbidden(self, x, y) -> bool:
        x, y = _name(x), _name(y)
        if (x, y) in self._forbidden:
            return True
        tx, ty = self._tier_of.get(x), self._tier_of.get(y)
        return tx is not None and ty is not None and tx > ty

    def is_required(self, x, y) -> bool:
        return (_name(x), _name(y)) in self._required

    def forbidden_edges(self) -> typing.List[typing.Tuple[str, str]]:
        """Explicitly forbidden pairs followed by pairs forbidden by tiers"""
        pairs = sorted(self._forbidden)
        for x, y in itertools.permutations(sorted(self._tier_of), 2):
            if self._tier_of[x] > self._tier_of[y] and (x, y) not in self._forbidden:
                pairs.append((x, y))
        return pairs

    def required_edges(self) -> typing.List[typing.Tuple[str, str]]:
        return sorted(self._required)

    def __bool__(self):
        return bool(self._forbidden or self._required or self._tier_of)

    @staticmethod
    def resolve(pairs, nodes) -> typing.List[typing.Tuple[Node, Node]]:
        """Match pairs of names to the given nodes by name. Pairs with an unknown name are dropped."""
        by_name = {node.name: node for node in nodes}
        resolved = []
        for x, y in pairs:
            if x in by_name and y in by_name:
                resolved.append((by_name[x], by_name[y]))
        return resolved

    def to_dict(self):
        return {'forbidden': [list(p) for p in sorted(self._forbidden)],
                'required': [list(p) for p in sorted(self._required)],
                'tiers': self.tiers}

    @staticmethod
    def from_dict(dic):
        return Knowledge(dic.get('forbidden', ()), dic.get('required', ()), dic.get('tiers'))

    def __str__(self):
        lines = ['forbidden: ' + ', '.join('{} --> {}'.format(x, y) for x, y in sorted(self._forbidden)),
                 'required: ' + ', '.join('{} --> {}'.format(x, y) for x, y in sorted(self._required))]
        for t, names in enumerate(self.tiers):
            lines.append('tier {}: {}'.format(t, ', '.join(names)))
        return '\n'.join(lines)

import typing
from collections import OrderedDict
from itertools import groupby

T = typing.TypeVar('T')


class ChoiceGenerator:
    """Generates all `k`-combinations of indices `0, ..., n-1` in lexicographic order.

    Each combination is an ascending tuple. `next()` returns `None` once the generator is exhausted
    and keeps returning `None` afterwards, until `reset()` is called.

    Examples
    --------
    >>> list(ChoiceGenerator(4, 2))
    [(0, 1), (0, 2), (0, 3), (1, 2), (1, 3), (2, 3)]
    """

    def __init__(self, n: int, k: int):
        if n < 0:
            raise ValueError('n must be non-negative: {}'.format(n))
        if not 0 <= k <= n:
            raise ValueError('k must be between 0 and n={}: {}'.format(n, k))
        self.n = n
        self.k = k
        self.reset()

    def reset(self):
        self._current = None
        self._done = False

    def next(self) -> typing.Optional[typing.Tuple[int, ...]]:
        if self._done:
            return None

        if self._current is None:
            self._current = list(range(self.k))
            return tuple(self._current)

        n, k, current = self.n, self.k, self._current
        for i in reversed(range(k)):
            if current[i] < n - k + i:
                current[i] += 1
                for j in range(i + 1, k):
                    current[j] = current[j - 1] + 1
                return tuple(current)

        self._done = True
        return None

    def __iter__(self):
        while True:
            choice = self.next()
            if choice is None:
                return
            yield choice


def choices(xs: typing.Sequence[T], k: int) -> typing.Iterator[typing.List[T]]:
    """`k`-subsets of `xs` as lists, in the order of `ChoiceGenerator`"""
    for choice in ChoiceGenerator(len(xs), k):
        yield [xs[i] for i in choice]


def ordered_unique(xs: typing.Iterable[T]) -> typing.List[T]:
    """Removes duplicates while keeping the first occurrence of each item."""
    seen = set()
    kept = []
    for x in xs:
        if x not in seen:
            seen.add(x)
            kept.append(x)
    return kept


def group_by(xs: typing.Iterable[T], keyfunc, sort=False) -> typing.Iterator[typing.Tuple[T, typing.List]]:
    """A generator of tuples of a key and its group as a `list`"""
    if not sort:
        return ((k, list(g)) for k, g in groupby(sorted(xs, key=keyfunc), key=keyfunc))
    else:
        kgs = [(k, list(sorted(g))) for k, g in groupby(sorted(xs, key=keyfunc), key=keyfunc)]
        kgs = sorted(kgs, key=lambda kg: kg[0])
        return iter(kgs)


class LRUCache:
    def __init__(self, max_capacity=128):
        if max_capacity < 1:
            raise ValueError('capacity must be positive: {}'.format(max_capacity))
        self.max_capacity = max_capacity
        self.cache = OrderedDict()

    def __contains__(self, item):
        return item in self.cache

    def __getitem__(self, key):
        """Get a key-associating value or None"""
        if key in self.cache:
            value = self.cache[key]
            self.cache.move_to_end(key)
            return value
        return None

    def __setitem__(self, key, value):
        self.cache[key] = value
        self.cache.move_to_end(key)
        if len(self.cache) > self.max_capacity:
            self.cache.popitem(last=False)

    def lazy(self, key, func, *args, **kwargs):
        if key in self.cache:
            return self[key]
        self[key] = func(*args, **kwargs)
        return self[key]

    def clear(self):
        self.cache.clear()

    def __len__(self):
        return len(self.cache)

    def __iter__(self):
        return iter(self.cache)

from itertools import combinations

import pytest

from pypag.utils import ChoiceGenerator, choices, group_by, ordered_unique, LRUCache


def test_choice_generator_counts():
    for n in range(7):
        for k in range(n + 1):
            generated = list(ChoiceGenerator(n, k))
            assert generated == list(combinations(range(n), k))
            assert len(set(generated)) == len(generated)
            assert all(list(c) == sorted(c) for c in generated)


def test_choice_generator_sentinel_and_reset():
    gen = ChoiceGenerator(4, 2)
    first = []
    while True:
        c = gen.next()
        if c is None:
            break
        first.append(c)
    assert first == [(0, 1), (0, 2), (0, 3), (1, 2), (1, 3), (2, 3)]
    assert gen.next() is None
    assert gen.next() is None

    gen.reset()
    assert list(gen) == first
    assert list(ChoiceGenerator(4, 2)) == first


def test_choice_generator_edge_cases():
    assert list(ChoiceGenerator(0, 0)) == [()]
    assert list(ChoiceGenerator(5, 0)) == [()]
    assert list(ChoiceGenerator(3, 3)) == [(0, 1, 2)]
    with pytest.raises(ValueError):
        ChoiceGenerator(2, 3)
    with pytest.raises(ValueError):
        ChoiceGenerator(3, -1)


def test_choices():
    assert list(choices('abc', 2)) == [['a', 'b'], ['a', 'c'], ['b', 'c']]
    assert list(choices([], 0)) == [[]]


def test_group_by():
    grouped = list(group_by(((1, 2), (2, 3), (3, 2), (4, 4)), lambda x: x[1]))
    assert len(grouped) == 3
    d = dict(grouped)
    assert set(d.keys()) == {2, 3, 4}
    assert d[2] == [(1, 2), (3, 2)]


def test_ordered_unique():
    assert ordered_unique([3, 1, 3, 2, 1]) == [3, 1, 2]
    assert ordered_unique([]) == []


def test_lru():
    cache = LRUCache(2)
    cache[1] = 'a'
    cache[2] = 'b'
    assert cache[1] == 'a'
    cache[3] = 'c'
    assert 2 not in cache
    assert 1 in cache and 3 in cache
    assert cache[2] is None

    calls = []

    def f(x):
        calls.append(x)
        return x * 2

    assert cache.lazy(5, f, 5) == 10
    assert cache.lazy(5, f, 5) == 10
    assert calls == [5]
    assert len(cache) == 2
    cache.clear()
    assert len(cache) == 0

    with pytest.raises(ValueError):
        LRUCache(0)

import random

import pytest

from .elgamal import generate_keypair
from .group import DEFAULT_PARAMS
from .randomness import RandomSource
from .threshold import deal_shares


class SeededSource(RandomSource):
    """Source reproductible, réservée aux tests"""

    def __init__(self, seed=0):
        super().__init__()
        self._seeded = random.Random(seed)

    def _randint(self, a, b):
        return self._seeded.randint(a, b)


class ReplaySource(RandomSource):
    """Renvoie la même valeur à chaque tirage, comme un générateur défaillant"""

    def __init__(self, value):
        super().__init__()
        self._value = value

    def _randint(self, a, b):
        return min(max(self._value, a), b)


@pytest.fixture
def params():
    return DEFAULT_PARAMS


@pytest.fixture
def rng():
    return SeededSource(1234)


@pytest.fixture
def keypair(params, rng):
    return generate_keypair(params, rng)


@pytest.fixture
def pk(keypair):
    return keypair.public_key


@pytest.fixture
def threshold_setup(params, rng):
    """t = 3 parmi n = 5"""
    return deal_shares(params, 3, 5, rng=rng)

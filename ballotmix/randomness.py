"""
Source d'aléa secret pour les chiffrements, engagements et mélanges.

La source est passée explicitement à chaque opération qui a besoin de
valeurs neuves. Tirer le même exposant pour deux chiffrements ou deux
engagements de preuve révèle le secret sous-jacent : rien ici ne garde ni
ne rejoue de valeurs.
"""
from typing import List, Tuple

from Crypto.Random import random as crypto_random

from .errors import RandomnessFailure


class RandomSource:
    """Source aléatoire cryptographiquement sûre, alimentée par l'entropie du système"""

    def __init__(self):
        self._rng = crypto_random.StrongRandom()

    def _randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def randint(self, a: int, b: int) -> int:
        """
        Tire un entier uniformément dans [a, b]

        Raises:
            RandomnessFailure: Si la source d'entropie est illisible
        """
        if a > b:
            raise ValueError("empty range")
        try:
            return self._randint(a, b)
        except (OSError, NotImplementedError) as e:
            raise RandomnessFailure("secure entropy source unavailable") from e

    def exponent(self, q: int) -> int:
        """Tire un exposant neuf dans [1, q-1]"""
        return self.randint(1, q - 1)

    def exponents(self, q: int, count: int) -> List[int]:
        return [self.exponent(q) for _ in range(count)]

    def permutation(self, size: int) -> Tuple[int, ...]:
        """
        Tire une permutation uniforme de range(size) (Fisher-Yates)

        Returns:
            Tuple[int, ...]: pi, avec pi[i] l'indice source de la position i
        """
        items = list(range(size))
        for i in range(size - 1, 0, -1):
            j = self.randint(0, i)
            items[i], items[j] = items[j], items[i]
        return tuple(items)

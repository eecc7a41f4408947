"""
Arithmétique dans le sous-groupe G_q d'ordre premier de Z_p^*.

Tout élément consommé par le reste du paquet passe d'abord par
`require_member` ; les valeurs hors de G_q sont rejetées, jamais réduites.
"""
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional, Tuple

from Crypto.Hash import SHA256
from Crypto.Util.number import GCD, bytes_to_long, inverse, isPrime

from . import config
from .errors import InvalidGroupElement
from .randomness import RandomSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GroupParams:
    """Module p, ordre q du sous-groupe et générateur g de G_q"""
    p: int
    q: int
    g: int

    @property
    def element_size(self) -> int:
        """Largeur en octets d'un élément sérialisé"""
        return (self.p.bit_length() + 7) // 8

    @property
    def scalar_size(self) -> int:
        """Largeur en octets d'un exposant sérialisé"""
        return (self.q.bit_length() + 7) // 8

    @property
    def cofactor(self) -> int:
        return (self.p - 1) // self.q

    def validate(self) -> bool:
        return validate_params(self)


@lru_cache(maxsize=None)
def validate_params(params: GroupParams) -> bool:
    """
    Vérifie que les paramètres du groupe sont utilisables

    Returns:
        bool: True si p et q sont premiers, q | p-1 et g engendre G_q
    """
    p, q, g = params.p, params.q, params.g
    if p < 5 or q < 2:
        return False
    if (p - 1) % q != 0:
        return False
    if not (isPrime(p) and isPrime(q)):
        return False
    if g <= 1 or g >= p:
        return False
    # g^q = 1 (mod p) et g != 1, donc g est d'ordre q
    return pow(g, q, p) == 1


DEFAULT_PARAMS = GroupParams(p=config.PARAM_P, q=config.PARAM_Q, g=config.PARAM_G)


def modpow(base: int, exponent: int, modulus: int) -> int:
    if modulus <= 1:
        raise ValueError("modulus must be greater than 1")
    return pow(base, exponent, modulus)


def mul_mod(a: int, b: int, modulus: int) -> int:
    if modulus <= 1:
        raise ValueError("modulus must be greater than 1")
    return (a * b) % modulus


def inv_mod(a: int, modulus: int) -> int:
    """
    Inverse multiplicatif de a modulo modulus

    Raises:
        ValueError: Si a n'est pas inversible
    """
    if modulus <= 1:
        raise ValueError("modulus must be greater than 1")
    a %= modulus
    if a == 0 or GCD(a, modulus) != 1:
        raise ValueError("value is not invertible")
    return inverse(a, modulus)


def is_member(x, params: GroupParams) -> bool:
    """Teste 0 < x < p et x^q = 1 (mod p)"""
    if not isinstance(x, int) or isinstance(x, bool):
        return False
    if not 0 < x < params.p:
        return False
    return pow(x, params.q, params.p) == 1


def require_member(x, params: GroupParams, what: str = "value") -> int:
    """
    Renvoie x inchangé s'il appartient à G_q

    Raises:
        InvalidGroupElement: Si x est hors du sous-groupe
    """
    if not is_member(x, params):
        raise InvalidGroupElement(x if isinstance(x, int) else None, what)
    return x


def random_exponent(params: GroupParams, rng: Optional[RandomSource] = None) -> int:
    """
    Tire un exposant neuf uniformément dans [1, q-1]

    Raises:
        RandomnessFailure: Si aucune entropie sûre n'est disponible
    """
    rng = rng or RandomSource()
    return rng.exponent(params.q)


def int_to_bytes(value: int, length: int) -> bytes:
    """Encodage gros-boutiste à largeur fixe"""
    if value < 0 or value.bit_length() > 8 * length:
        raise ValueError(f"value does not fit in {length} bytes")
    return value.to_bytes(length, "big")


def element_to_bytes(x: int, params: GroupParams) -> bytes:
    return int_to_bytes(x, params.element_size)


def element_from_bytes(data: bytes, params: GroupParams, validate: bool = True) -> int:
    """
    Décode un élément du groupe à largeur fixe

    Raises:
        ValueError: Si la longueur est fausse
        InvalidGroupElement: Si validate est vrai et la valeur hors de G_q
    """
    if len(data) != params.element_size:
        raise ValueError(f"group element must be {params.element_size} bytes, got {len(data)}")
    x = bytes_to_long(data)
    if validate:
        require_member(x, params, "decoded element")
    return x


def scalar_to_bytes(x: int, params: GroupParams) -> bytes:
    return int_to_bytes(x, params.scalar_size)


def scalar_from_bytes(data: bytes, params: GroupParams) -> int:
    if len(data) != params.scalar_size:
        raise ValueError(f"scalar must be {params.scalar_size} bytes, got {len(data)}")
    x = bytes_to_long(data)
    if x >= params.q:
        raise ValueError("scalar is not reduced modulo q")
    return x


@lru_cache(maxsize=64)
def _generators(params: GroupParams, count: int, label: bytes) -> Tuple[int, ...]:
    p = params.p
    e = params.cofactor
    result = []
    for i in range(count):
        counter = 0
        h_i = 0
        while h_i <= 1:
            counter += 1
            digest = SHA256.new(label + b"ggen" + int_to_bytes(i, 4) + int_to_bytes(counter, 4)).digest()
            w = bytes_to_long(digest) % p
            h_i = pow(w, e, p)
        result.append(h_i)
    logger.debug("derived %d independent generators for label %r", count, label)
    return tuple(result)


def independent_generators(params: GroupParams, count: int, label: bytes) -> List[int]:
    """
    Dérive `count` générateurs de G_q de logarithmes discrets inconnus

    Suit FIPS 186-4 A.2.3 : hache (label, "ggen", i, compteur) en W puis
    l'élève au cofacteur (p-1)/q. Un label lié à une élection rend les
    générateurs propres à celle-ci.

    Args:
        params: Le groupe
        count: Le nombre de générateurs
        label: Séparation de domaine, par exemple l'identifiant d'élection

    Returns:
        List[int]: Éléments distincts de G_q, tous différents de 1
    """
    if count < 0:
        raise ValueError("count must be positive")
    return list(_generators(params, count, bytes(label)))

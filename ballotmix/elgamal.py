"""
ElGamal sur G_q, avec encodage du message simple ou exponentiel.

Simple :       (c1, c2) = (g^r, M * h^r)     avec M un élément de G_q
Exponentiel :  (c1, c2) = (g^r, g^m * h^r)   avec m un petit entier

Le produit composante par composante de deux chiffrés donne un chiffré du
produit des messages, c'est-à-dire de la somme m1 + m2 en encodage
exponentiel. Le dépouillement en dépend, d'où l'encodage exponentiel par
défaut.
"""
import enum
import logging
from dataclasses import dataclass, field
from math import isqrt
from typing import Iterable, Optional, Tuple

from . import config
from .errors import DecodingError
from .group import (
    GroupParams, element_from_bytes, element_to_bytes, inv_mod,
    is_member, random_exponent, require_member,
)
from .randomness import RandomSource

logger = logging.getLogger(__name__)


class Encoding(enum.Enum):
    PLAIN = "plain"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class PublicKey:
    params: GroupParams
    h: int

    def to_bytes(self) -> bytes:
        return element_to_bytes(self.h, self.params)

    @classmethod
    def from_bytes(cls, data: bytes, params: GroupParams) -> "PublicKey":
        return cls(params, element_from_bytes(data, params))


@dataclass(frozen=True)
class KeyPair:
    """Scalaire secret x et élément public h = g^x"""
    params: GroupParams
    x: int = field(repr=False)
    h: int

    @property
    def public_key(self) -> PublicKey:
        return PublicKey(self.params, self.h)


@dataclass(frozen=True)
class Ciphertext:
    c1: int
    c2: int

    def is_valid(self, params: GroupParams) -> bool:
        return is_member(self.c1, params) and is_member(self.c2, params)

    def validate(self, params: GroupParams) -> "Ciphertext":
        require_member(self.c1, params, "ciphertext c1")
        require_member(self.c2, params, "ciphertext c2")
        return self

    def to_bytes(self, params: GroupParams) -> bytes:
        return element_to_bytes(self.c1, params) + element_to_bytes(self.c2, params)

    @classmethod
    def from_bytes(cls, data: bytes, params: GroupParams, validate: bool = True) -> "Ciphertext":
        size = params.element_size
        if len(data) != 2 * size:
            raise ValueError(f"ciphertext must be {2 * size} bytes, got {len(data)}")
        return cls(
            element_from_bytes(data[:size], params, validate),
            element_from_bytes(data[size:], params, validate),
        )


def generate_keypair(params: GroupParams, rng: Optional[RandomSource] = None) -> KeyPair:
    """
    Génère une paire de clés ElGamal

    Raises:
        ValueError: Si les paramètres du groupe sont invalides
    """
    if not params.validate():
        raise ValueError("invalid group parameters")
    x = random_exponent(params, rng)
    return KeyPair(params, x, pow(params.g, x, params.p))


def encode_plaintext(m: int, params: GroupParams, encoding: Encoding = Encoding.EXPONENTIAL) -> int:
    """
    Associe à un message l'élément du groupe qui sera chiffré

    Raises:
        ValueError: Si m est hors bornes en encodage exponentiel
        InvalidGroupElement: Si m n'est pas dans G_q en encodage simple
    """
    if encoding is Encoding.EXPONENTIAL:
        if not 0 <= m < params.q:
            raise ValueError("message must be in [0, q)")
        return pow(params.g, m, params.p)
    return require_member(m, params, "plaintext")


def decode_plaintext(
    element: int,
    params: GroupParams,
    encoding: Encoding = Encoding.EXPONENTIAL,
    max_value: Optional[int] = None,
) -> int:
    """
    Retrouve le message à partir de l'élément déchiffré

    En encodage exponentiel, résout g^m = element pour 0 <= m <= max_value
    par pas de bébé, pas de géant.

    Raises:
        DecodingError: Si aucun m ne convient
    """
    if encoding is Encoding.PLAIN:
        return element
    bound = config.MAX_DECODED_VALUE if max_value is None else max_value
    return discrete_log(element, params, bound)


def discrete_log(element: int, params: GroupParams, bound: int) -> int:
    p, g = params.p, params.g
    step = isqrt(bound) + 1

    # pas de bébé : g^j pour j < step
    table = {}
    current = 1
    for j in range(step):
        table.setdefault(current, j)
        current = (current * g) % p

    # pas de géant : element * g^(-step*i)
    factor = inv_mod(pow(g, step, p), p)
    gamma = element % p
    for i in range(step + 1):
        j = table.get(gamma)
        if j is not None:
            m = i * step + j
            if m <= bound:
                return m
            break
        gamma = (gamma * factor) % p
    raise DecodingError(f"no plaintext in [0, {bound}] matches the decrypted element")


def encrypt_with_witness(
    pk: PublicKey,
    plaintext: int,
    encoding: Encoding = Encoding.EXPONENTIAL,
    randomness: Optional[int] = None,
    rng: Optional[RandomSource] = None,
) -> Tuple[Ciphertext, int]:
    """
    Chiffre un message et renvoie l'aléa utilisé

    Args:
        pk: La clé publique du destinataire
        plaintext: Le message, voir Encoding
        encoding: L'encodage du message
        randomness: Témoin r explicite, tiré à neuf s'il est omis. Ne jamais
            passer deux fois le même r.
        rng: La source du témoin tiré à neuf

    Returns:
        Tuple[Ciphertext, int]: (chiffré, r)
    """
    params = pk.params
    require_member(pk.h, params, "public key")
    encoded = encode_plaintext(plaintext, params, encoding)
    r = random_exponent(params, rng) if randomness is None else randomness
    if not 0 < r < params.q:
        raise ValueError("randomness must be in [1, q-1]")
    c1 = pow(params.g, r, params.p)
    c2 = (encoded * pow(pk.h, r, params.p)) % params.p
    return Ciphertext(c1, c2), r


def encrypt(
    pk: PublicKey,
    plaintext: int,
    encoding: Encoding = Encoding.EXPONENTIAL,
    rng: Optional[RandomSource] = None,
) -> Ciphertext:
    """Chiffre un message avec un aléa neuf"""
    ciphertext, _ = encrypt_with_witness(pk, plaintext, encoding, rng=rng)
    return ciphertext


def decrypt_element(keypair: KeyPair, ct: Ciphertext) -> int:
    """Calcule c2 * c1^(-x), le message encodé"""
    params = keypair.params
    ct.validate(params)
    s = pow(ct.c1, keypair.x, params.p)
    return (ct.c2 * inv_mod(s, params.p)) % params.p


def decrypt(
    keypair: KeyPair,
    ct: Ciphertext,
    encoding: Encoding = Encoding.EXPONENTIAL,
    max_value: Optional[int] = None,
) -> int:
    """
    Déchiffre un chiffré

    Raises:
        InvalidGroupElement: Si le chiffré est mal formé
        DecodingError: Si le message exponentiel dépasse max_value
    """
    return decode_plaintext(decrypt_element(keypair, ct), keypair.params, encoding, max_value)


def reencrypt(pk: PublicKey, ct: Ciphertext, r: int) -> Ciphertext:
    """
    (c1, c2) -> (c1 * g^r, c2 * h^r), même message sous un aléa neuf

    Raises:
        InvalidGroupElement: Si la clé ou le chiffré est mal formé
        ValueError: Si r n'est pas dans [1, q-1]
    """
    params = pk.params
    require_member(pk.h, params, "public key")
    ct.validate(params)
    if not 0 < r < params.q:
        raise ValueError("randomness must be in [1, q-1]")
    p = params.p
    return Ciphertext(
        (ct.c1 * pow(params.g, r, p)) % p,
        (ct.c2 * pow(pk.h, r, p)) % p,
    )


def combine(ct1: Ciphertext, ct2: Ciphertext, params: GroupParams) -> Ciphertext:
    """Combinaison homomorphe : produit composante par composante"""
    ct1.validate(params)
    ct2.validate(params)
    p = params.p
    return Ciphertext((ct1.c1 * ct2.c1) % p, (ct1.c2 * ct2.c2) % p)


def combine_all(ciphertexts: Iterable[Ciphertext], params: GroupParams) -> Ciphertext:
    """
    Réduit un lot de chiffrés à un seul, par exemple pour dépouiller des
    votes exponentiels

    Raises:
        ValueError: Si le lot est vide
    """
    result = None
    count = 0
    for ct in ciphertexts:
        result = ct.validate(params) if result is None else combine(result, ct, params)
        count += 1
    if result is None:
        raise ValueError("nothing to combine")
    logger.debug("combined %d ciphertexts", count)
    return result


__all__ = [
    "Ciphertext", "Encoding", "KeyPair", "PublicKey",
    "combine", "combine_all", "decode_plaintext", "decrypt", "decrypt_element",
    "discrete_log", "encode_plaintext", "encrypt", "encrypt_with_witness",
    "generate_keypair", "reencrypt",
]

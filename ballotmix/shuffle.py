"""
Mélange vérifiable par rechiffrement (coeur du mix-net).

Un mélange associe aux chiffrés d'entrée e_0..e_{N-1} les sorties

    e~_i = reencrypt(e_{pi(i)}, r~_{pi(i)})

pour une permutation uniforme pi et des aléas neufs r~. La preuve est
celle de Wikstrom sous la forme de Haenni, Locher, Koenig et Dubuis,
"Pseudo-code algorithms for verifiable re-encryption mix-nets" :

1. Engagements de Pedersen c_{pi(i)} = g^{r_{pi(i)}} h_i aux colonnes de la
   matrice de permutation, sous des générateurs h_i dérivés de
   l'identifiant d'élection.
2. N défis publics u dérivés de (e, e~, c, pk).
3. Une chaîne d'engagements c^_i = g^{r^_i} c^_{i-1}^{u'_i} (c^_{-1} = h)
   sur les défis permutés u'_i = u_{pi(i)}.
4. Un défi de Fiat-Shamir sur tous les engagements, et les réponses
   s1..s4, s^_i, s'_i.

La preuve compte O(N) éléments. La vérification est tout ou rien.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from . import config
from .elgamal import Ciphertext, PublicKey, reencrypt
from .errors import InvalidProof
from .group import (
    GroupParams, element_from_bytes, element_to_bytes, independent_generators,
    int_to_bytes, inv_mod, is_member, require_member,
    scalar_from_bytes, scalar_to_bytes,
)
from .randomness import RandomSource
from .sigma import fiat_shamir

logger = logging.getLogger(__name__)

SHUFFLE_LABEL = "ballotmix/shuffle"
CHALLENGES_LABEL = "ballotmix/shuffle-challenges"
GENERATORS_LABEL = b"ballotmix/shuffle-generators/"


@dataclass(frozen=True)
class ShuffleProof:
    challenge: int
    s1: int
    s2: int
    s3: int
    s4: int
    s_hat: Tuple[int, ...]
    s_prime: Tuple[int, ...]
    permutation_commitments: Tuple[int, ...]
    chain_commitments: Tuple[int, ...]

    @property
    def size(self) -> int:
        return len(self.permutation_commitments)

    def to_bytes(self, params: GroupParams) -> bytes:
        scalars = (self.challenge, self.s1, self.s2, self.s3, self.s4, *self.s_hat, *self.s_prime)
        elements = (*self.permutation_commitments, *self.chain_commitments)
        return (
            int_to_bytes(self.size, 4)
            + b"".join(scalar_to_bytes(s, params) for s in scalars)
            + b"".join(element_to_bytes(x, params) for x in elements)
        )

    @classmethod
    def from_bytes(cls, data: bytes, params: GroupParams) -> "ShuffleProof":
        """
        Raises:
            ValueError: Si la longueur ne correspond pas à la taille encodée
            InvalidGroupElement: Si un engagement est hors de G_q
        """
        if len(data) < 4:
            raise ValueError("shuffle proof is too short")
        n = int.from_bytes(data[:4], "big")
        ss, es = params.scalar_size, params.element_size
        if n == 0 or len(data) != 4 + (5 + 2 * n) * ss + 2 * n * es:
            raise ValueError("shuffle proof has the wrong length")
        offset = 4
        scalars = []
        for _ in range(5 + 2 * n):
            scalars.append(scalar_from_bytes(data[offset:offset + ss], params))
            offset += ss
        elements = []
        for _ in range(2 * n):
            elements.append(element_from_bytes(data[offset:offset + es], params))
            offset += es
        return cls(
            challenge=scalars[0],
            s1=scalars[1],
            s2=scalars[2],
            s3=scalars[3],
            s4=scalars[4],
            s_hat=tuple(scalars[5:5 + n]),
            s_prime=tuple(scalars[5 + n:]),
            permutation_commitments=tuple(elements[:n]),
            chain_commitments=tuple(elements[n:]),
        )


def shuffle_generators(params: GroupParams, size: int, election_id: bytes) -> Tuple[int, List[int]]:
    """
    Returns:
        Tuple[int, List[int]]: (h, [h_0..h_{size-1}]), la base de la chaîne et
            les générateurs des engagements de permutation
    """
    generators = independent_generators(params, size + 1, GENERATORS_LABEL + election_id)
    return generators[0], generators[1:]


def _product(values, p: int) -> int:
    result = 1
    for v in values:
        result = (result * v) % p
    return result


def _multi_pow(bases: Sequence[int], exponents: Sequence[int], p: int) -> int:
    result = 1
    for base, exponent in zip(bases, exponents):
        result = (result * pow(base, exponent, p)) % p
    return result


def _check_permutation(permutation: Sequence[int], size: int) -> None:
    if sorted(permutation) != list(range(size)):
        raise ValueError("not a permutation of the input positions")


def generate_permutation_commitment(
    params: GroupParams,
    permutation: Sequence[int],
    randoms: Sequence[int],
    generators: Sequence[int],
) -> Tuple[int, ...]:
    """
    S'engage sur les colonnes de la matrice de permutation

    c_{pi(i)} = g^{r_{pi(i)}} * h_i : l'engagement j cache la position de
    sortie qui reçoit l'entrée j.
    """
    size = len(permutation)
    if size == 0:
        raise ValueError("vectors cannot be empty")
    if len(randoms) != size or len(generators) != size:
        raise ValueError("permutation, randoms and generators need to have the same length")
    _check_permutation(permutation, size)
    p, g = params.p, params.g
    commitments = [0] * size
    for i, j in enumerate(permutation):
        commitments[j] = (pow(g, randoms[j], p) * generators[i]) % p
    return tuple(commitments)


def generate_commitment_chain(
    params: GroupParams, h: int, challenges: Sequence[int], randoms: Sequence[int]
) -> Tuple[int, ...]:
    """c^_i = g^{r^_i} * c^_{i-1}^{u'_i} avec c^_{-1} = h"""
    if not challenges:
        raise ValueError("vectors cannot be empty")
    if len(challenges) != len(randoms):
        raise ValueError("challenges and randoms need to have the same length")
    p, g = params.p, params.g
    chain = []
    previous = h
    for u_i, r_i in zip(challenges, randoms):
        previous = (pow(g, r_i, p) * pow(previous, u_i, p)) % p
        chain.append(previous)
    return tuple(chain)


def get_challenges(
    pk: PublicKey,
    inputs: Sequence[Ciphertext],
    outputs: Sequence[Ciphertext],
    commitments: Sequence[int],
    election_id: bytes,
) -> List[int]:
    """Dérive les N défis publics u de (e, e~, c, pk)"""
    size = len(inputs)
    if size == 0:
        raise ValueError("vectors cannot be empty")
    if len(outputs) != size or len(commitments) != size:
        raise ValueError("encryptions, shuffled encryptions and commitments need to have the same length")
    params = pk.params
    seed = fiat_shamir(
        params, CHALLENGES_LABEL, election_id, pk.h,
        tuple(inputs), tuple(outputs), tuple(commitments),
    )
    return [fiat_shamir(params, CHALLENGES_LABEL, seed, i) for i in range(size)]


def _shuffle_challenge(pk, election_id, inputs, outputs, commitments, chain, t, t_hat) -> int:
    return fiat_shamir(
        pk.params, SHUFFLE_LABEL, election_id, pk.h,
        tuple(inputs), tuple(outputs), tuple(commitments), tuple(chain),
        tuple(t), tuple(t_hat),
    )


def shuffle(
    pk: PublicKey,
    ciphertexts: Sequence[Ciphertext],
    permutation: Sequence[int],
    randomizers: Sequence[int],
) -> List[Ciphertext]:
    """
    Permute et rechiffre : sortie i = reencrypt(entrée pi(i), r~_{pi(i)})

    Les aléas sont indexés par position d'entrée.
    """
    size = len(ciphertexts)
    if len(permutation) != size or len(randomizers) != size:
        raise ValueError("ciphertexts, permutation and randomizers need to have the same length")
    _check_permutation(permutation, size)
    return [reencrypt(pk, ciphertexts[j], randomizers[j]) for j in permutation]


def prove_shuffle(
    pk: PublicKey,
    inputs: Sequence[Ciphertext],
    outputs: Sequence[Ciphertext],
    permutation: Sequence[int],
    randomizers: Sequence[int],
    rng: Optional[RandomSource] = None,
    election_id: Optional[bytes] = None,
) -> ShuffleProof:
    """
    Prouve la connaissance de la permutation et des aléas d'un mélange

    Args:
        pk: La clé publique des chiffrés
        inputs: e, le lot d'entrée
        outputs: e~, le lot mélangé
        permutation: pi, la sortie i reçoit l'entrée pi(i)
        randomizers: r~ indexés par position d'entrée
        rng: La source de l'aléa d'engagement
        election_id: Lie les générateurs à une élection

    Returns:
        ShuffleProof
    """
    size = len(inputs)
    if size == 0:
        raise ValueError("vectors cannot be empty")
    if len(outputs) != size or len(permutation) != size or len(randomizers) != size:
        raise ValueError("inputs, outputs, permutation and randomizers need to have the same length")
    _check_permutation(permutation, size)

    params = pk.params
    p, q, g = params.p, params.q, params.g
    rng = rng or RandomSource()
    election_id = config.ELECTION_ID if election_id is None else election_id
    # témoin figé pour toute la preuve
    permutation = tuple(permutation)

    h, vec_h = shuffle_generators(params, size, election_id)

    # engagement de permutation
    vec_r = rng.exponents(q, size)
    vec_c = generate_permutation_commitment(params, permutation, vec_r, vec_h)

    # défis publics et leur ordre permuté
    vec_u = get_challenges(pk, inputs, outputs, vec_c, election_id)
    u_prime = [vec_u[j] for j in permutation]

    # chaîne d'engagements sur u'
    vec_r_hat = rng.exponents(q, size)
    vec_c_hat = generate_commitment_chain(params, h, u_prime, vec_r_hat)

    # témoins agrégés
    r_bar = sum(vec_r) % q
    vec_v = [1] * size
    for i in range(size - 1, 0, -1):
        vec_v[i - 1] = (u_prime[i] * vec_v[i]) % q
    r_hat = sum(a * b for a, b in zip(vec_r_hat, vec_v)) % q
    r = sum(a * b for a, b in zip(vec_r, vec_u)) % q
    r_tilde = sum(a * b for a, b in zip(randomizers, vec_u)) % q

    # engagements
    w1, w2, w3, w4 = rng.exponents(q, 4)
    vec_w_hat = rng.exponents(q, size)
    vec_w_prime = rng.exponents(q, size)

    t1 = pow(g, w1, p)
    t2 = pow(g, w2, p)
    t3 = (pow(g, w3, p) * _multi_pow(vec_h, vec_w_prime, p)) % p
    t4_1 = (pow(g, q - w4, p) * _multi_pow([e.c1 for e in outputs], vec_w_prime, p)) % p
    t4_2 = (pow(pk.h, q - w4, p) * _multi_pow([e.c2 for e in outputs], vec_w_prime, p)) % p

    vec_t_hat = []
    previous = h
    for i in range(size):
        vec_t_hat.append((pow(g, vec_w_hat[i], p) * pow(previous, vec_w_prime[i], p)) % p)
        previous = vec_c_hat[i]

    c = _shuffle_challenge(
        pk, election_id, inputs, outputs, vec_c, vec_c_hat,
        (t1, t2, t3, t4_1, t4_2), vec_t_hat,
    )

    proof = ShuffleProof(
        challenge=c,
        s1=(w1 - c * r_bar) % q,
        s2=(w2 - c * r_hat) % q,
        s3=(w3 - c * r) % q,
        s4=(w4 - c * r_tilde) % q,
        s_hat=tuple((w - c * rh) % q for w, rh in zip(vec_w_hat, vec_r_hat)),
        s_prime=tuple((w - c * u) % q for w, u in zip(vec_w_prime, u_prime)),
        permutation_commitments=vec_c,
        chain_commitments=vec_c_hat,
    )
    logger.debug("generated shuffle proof for %d ciphertexts", size)
    return proof


def shuffle_with_proof(
    pk: PublicKey,
    ciphertexts: Sequence[Ciphertext],
    rng: Optional[RandomSource] = None,
    election_id: Optional[bytes] = None,
) -> Tuple[List[Ciphertext], ShuffleProof]:
    """
    Mélange un lot sous une permutation neuve et le prouve

    Raises:
        ValueError: Si le lot est vide
        InvalidGroupElement: Si la clé ou un chiffré est mal formé
        RandomnessFailure: Si aucune entropie sûre n'est disponible
    """
    params = pk.params
    if not ciphertexts:
        raise ValueError("cannot shuffle an empty batch")
    require_member(pk.h, params, "public key")
    for ct in ciphertexts:
        ct.validate(params)

    rng = rng or RandomSource()
    size = len(ciphertexts)
    permutation = rng.permutation(size)
    randomizers = rng.exponents(params.q, size)
    outputs = shuffle(pk, ciphertexts, permutation, randomizers)
    proof = prove_shuffle(pk, ciphertexts, outputs, permutation, randomizers, rng, election_id)
    logger.info("shuffled %d ciphertexts", size)
    return outputs, proof


def _is_scalar(x, q: int) -> bool:
    return isinstance(x, int) and not isinstance(x, bool) and 0 <= x < q


def verify_shuffle(
    pk: PublicKey,
    inputs: Sequence[Ciphertext],
    outputs: Sequence[Ciphertext],
    proof: ShuffleProof,
    election_id: Optional[bytes] = None,
) -> bool:
    """
    Vérifie une preuve de mélange

    Returns:
        bool: True seulement si tous les éléments sont bien formés et si le
            défi agrégé recalculé correspond
    """
    params = pk.params
    p, q, g = params.p, params.q, params.g
    election_id = config.ELECTION_ID if election_id is None else election_id
    size = len(inputs)

    if size == 0 or len(outputs) != size:
        return False
    vec_c = tuple(proof.permutation_commitments)
    vec_c_hat = tuple(proof.chain_commitments)
    if not (len(vec_c) == len(vec_c_hat) == len(proof.s_hat) == len(proof.s_prime) == size):
        return False
    if not is_member(pk.h, params):
        return False
    if not all(ct.is_valid(params) for ct in (*inputs, *outputs)):
        return False
    if not all(is_member(x, params) for x in (*vec_c, *vec_c_hat)):
        return False
    scalars = (proof.challenge, proof.s1, proof.s2, proof.s3, proof.s4, *proof.s_hat, *proof.s_prime)
    if not all(_is_scalar(s, q) for s in scalars):
        return False

    h, vec_h = shuffle_generators(params, size, election_id)
    vec_u = get_challenges(pk, inputs, outputs, vec_c, election_id)
    c = proof.challenge

    c_bar = (_product(vec_c, p) * inv_mod(_product(vec_h, p), p)) % p
    u = _product(vec_u, q)
    c_hat = (vec_c_hat[-1] * inv_mod(pow(h, u, p), p)) % p
    c_tilde = _multi_pow(vec_c, vec_u, p)
    a_prime = _multi_pow([e.c1 for e in inputs], vec_u, p)
    b_prime = _multi_pow([e.c2 for e in inputs], vec_u, p)

    t1 = (pow(c_bar, c, p) * pow(g, proof.s1, p)) % p
    t2 = (pow(c_hat, c, p) * pow(g, proof.s2, p)) % p
    t3 = (pow(c_tilde, c, p) * pow(g, proof.s3, p) * _multi_pow(vec_h, proof.s_prime, p)) % p
    t4_1 = (
        pow(a_prime, c, p)
        * pow(g, (q - proof.s4) % q, p)
        * _multi_pow([e.c1 for e in outputs], proof.s_prime, p)
    ) % p
    t4_2 = (
        pow(b_prime, c, p)
        * pow(pk.h, (q - proof.s4) % q, p)
        * _multi_pow([e.c2 for e in outputs], proof.s_prime, p)
    ) % p

    vec_t_hat = []
    previous = h
    for i in range(size):
        vec_t_hat.append(
            (pow(vec_c_hat[i], c, p) * pow(g, proof.s_hat[i], p) * pow(previous, proof.s_prime[i], p)) % p
        )
        previous = vec_c_hat[i]

    recomputed = _shuffle_challenge(
        pk, election_id, inputs, outputs, vec_c, vec_c_hat,
        (t1, t2, t3, t4_1, t4_2), vec_t_hat,
    )
    if recomputed != c:
        logger.warning("shuffle proof rejected for a batch of %d ciphertexts", size)
        return False
    return True


def require_shuffle(
    pk: PublicKey,
    inputs: Sequence[Ciphertext],
    outputs: Sequence[Ciphertext],
    proof: ShuffleProof,
    election_id: Optional[bytes] = None,
) -> None:
    """
    Raises:
        InvalidProof: Si verify_shuffle rejette
    """
    if not verify_shuffle(pk, inputs, outputs, proof, election_id):
        raise InvalidProof("shuffle proof rejected")

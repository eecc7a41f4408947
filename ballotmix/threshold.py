"""
Déchiffrement à seuil (t, n).

Le secret x est partagé à la Shamir : x_i = f(i) pour un polynôme f de
degré t-1 avec f(0) = x. Le scelleur i publie d_i = c1^{x_i} avec une
preuve que log_g(g^{x_i}) = log_{c1}(d_i). Toute combinaison de t
déchiffrements partiels vérifiés donne

    c1^x = prod d_i^{lambda_i}

avec les coefficients de Lagrange lambda_i en zéro sur les indices
participants, puis m = c2 / c1^x. Les scelleurs ne partagent jamais leur
secret, ni entre eux ni avec le combineur.
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from .elgamal import Ciphertext, Encoding, PublicKey, decode_plaintext
from .errors import InsufficientShares, InvalidPartial
from .group import (
    GroupParams, element_from_bytes, element_to_bytes, int_to_bytes, inv_mod,
    is_member, random_exponent,
)
from .randomness import RandomSource
from .sigma import SigmaProof, prove_knowledge, prove_linear, verify_knowledge, verify_linear

logger = logging.getLogger(__name__)

PARTIAL_LABEL = "ballotmix/partial-decryption"
SHARE_LABEL = "ballotmix/key-share"

# les indices sont encodés sur 4 octets
MAX_INDEX = 2 ** 32 - 1


def is_valid_index(index) -> bool:
    return isinstance(index, int) and not isinstance(index, bool) and 1 <= index <= MAX_INDEX


class DecryptionProof(SigmaProof):
    """Égalité de logarithmes discrets entre (g, g^{x_i}) et (c1, d_i)"""


@dataclass(frozen=True)
class KeyShare:
    """Part secrète x_i du scelleur `index` (à partir de 1)"""
    params: GroupParams
    index: int
    x: int = field(repr=False)
    public_share: int
    threshold: int
    total: int


@dataclass(frozen=True)
class ThresholdKey:
    """Résultat public d'une cérémonie de clés"""
    public_key: PublicKey
    threshold: int
    public_shares: Tuple[int, ...]
    commitments: Tuple[int, ...] = ()

    @property
    def params(self) -> GroupParams:
        return self.public_key.params

    @property
    def total(self) -> int:
        return len(self.public_shares)

    def public_share(self, index: int) -> Optional[int]:
        if is_valid_index(index) and index <= self.total:
            return self.public_shares[index - 1]
        return None

    def share_key(self, index: int) -> PublicKey:
        """
        Raises:
            KeyError: Si aucun scelleur n'a cet indice
        """
        share = self.public_share(index)
        if share is None:
            raise KeyError(index)
        return PublicKey(self.params, share)


@dataclass(frozen=True)
class PartialDecryption:
    index: int
    value: int
    proof: DecryptionProof

    def to_bytes(self, params: GroupParams) -> bytes:
        return int_to_bytes(self.index, 4) + element_to_bytes(self.value, params) + self.proof.to_bytes(params)

    @classmethod
    def from_bytes(cls, data: bytes, params: GroupParams) -> "PartialDecryption":
        es = params.element_size
        if len(data) < 4 + es:
            raise ValueError("partial decryption is too short")
        index = int.from_bytes(data[:4], "big")
        value = element_from_bytes(data[4:4 + es], params)
        proof = DecryptionProof.from_bytes(data[4 + es:], params, 2)
        return cls(index, value, proof)


@dataclass(frozen=True)
class CombinedDecryption:
    plaintext: int
    element: int
    indices: Tuple[int, ...]
    rejected: Tuple[InvalidPartial, ...] = ()


def _evaluate(coefficients: Sequence[int], x: int, q: int) -> int:
    result = 0
    for a in reversed(coefficients):
        result = (result * x + a) % q
    return result


def deal_shares(
    params: GroupParams,
    threshold: int,
    total: int,
    secret: Optional[int] = None,
    rng: Optional[RandomSource] = None,
) -> Tuple[ThresholdKey, List[KeyShare]]:
    """
    Partage une clé de déchiffrement à la Shamir avec engagements de Feldman

    Args:
        params: Le groupe
        threshold: t, le nombre de parts nécessaires au déchiffrement
        total: n, le nombre de scelleurs
        secret: La clé à partager, tirée à neuf si omise
        rng: La source des coefficients du polynôme

    Returns:
        Tuple[ThresholdKey, List[KeyShare]]: le matériel de clé public et
            une part par scelleur, indices 1..n
    """
    if not 1 <= threshold <= total:
        raise ValueError("threshold must be between 1 and the number of shares")
    if total >= params.q or total > MAX_INDEX:
        raise ValueError("too many shares")
    if not params.validate():
        raise ValueError("invalid group parameters")
    rng = rng or RandomSource()
    p, q, g = params.p, params.q, params.g

    x = random_exponent(params, rng) if secret is None else secret
    if not 0 < x < q:
        raise ValueError("secret must be in [1, q-1]")
    coefficients = [x] + [random_exponent(params, rng) for _ in range(threshold - 1)]
    commitments = tuple(pow(g, a, p) for a in coefficients)

    shares = []
    for i in range(1, total + 1):
        x_i = _evaluate(coefficients, i, q)
        shares.append(KeyShare(params, i, x_i, pow(g, x_i, p), threshold, total))

    key = ThresholdKey(
        public_key=PublicKey(params, commitments[0]),
        threshold=threshold,
        public_shares=tuple(s.public_share for s in shares),
        commitments=commitments,
    )
    logger.info("dealt %d key shares with threshold %d", total, threshold)
    return key, shares


def public_share_from_commitments(params: GroupParams, commitments: Sequence[int], index: int) -> int:
    """g^{f(index)} = prod A_k^{index^k}"""
    p, q = params.p, params.q
    result = 1
    power = 1
    for a_k in commitments:
        result = (result * pow(a_k, power, p)) % p
        power = (power * index) % q
    return result


def verify_share(key: ThresholdKey, share: KeyShare) -> bool:
    """Vérifie une part secrète contre les engagements de Feldman"""
    params = key.params
    if share.public_share != key.public_share(share.index):
        return False
    if pow(params.g, share.x, params.p) != share.public_share:
        return False
    if key.commitments:
        return public_share_from_commitments(params, key.commitments, share.index) == share.public_share
    return True


def prove_share_knowledge(share: KeyShare, rng: Optional[RandomSource] = None) -> SigmaProof:
    """Preuve de Schnorr que le scelleur connaît le secret de sa part publique"""
    params = share.params
    return prove_knowledge(params, params.g, share.public_share, share.x, SHARE_LABEL, (share.index,), rng)


def verify_share_knowledge(params: GroupParams, index: int, public_share: int, proof: SigmaProof) -> bool:
    if not is_valid_index(index):
        return False
    return verify_knowledge(params, params.g, public_share, proof, SHARE_LABEL, (index,))


def partial_decrypt(share: KeyShare, ct: Ciphertext, rng: Optional[RandomSource] = None) -> PartialDecryption:
    """
    Calcule d_i = c1^{x_i} et le prouve

    Raises:
        InvalidGroupElement: Si le chiffré est mal formé
    """
    params = share.params
    ct.validate(params)
    d_i = pow(ct.c1, share.x, params.p)
    proof = prove_linear(
        params,
        (params.g, ct.c1),
        (share.public_share, d_i),
        share.x,
        PARTIAL_LABEL,
        context=(share.index, ct),
        rng=rng,
        proof_type=DecryptionProof,
    )
    return PartialDecryption(share.index, d_i, proof)


def verify_partial(
    share_key: PublicKey,
    ct: Ciphertext,
    partial: PartialDecryption,
    proof: Optional[SigmaProof] = None,
) -> bool:
    """
    Vérifie que partial.value = c1^{x_i} pour le x_i derrière share_key

    Args:
        share_key: La part publique g^{x_i} du scelleur
        ct: Le chiffré en cours de déchiffrement
        partial: Le déchiffrement partiel
        proof: Remplace partial.proof si elle est fournie

    Returns:
        bool: False pour toute entrée mal formée, y compris un indice hors
            de [1, 2^32 - 1]
    """
    params = share_key.params
    if not is_valid_index(partial.index):
        return False
    if not ct.is_valid(params) or not is_member(partial.value, params):
        return False
    return verify_linear(
        params,
        (params.g, ct.c1),
        (share_key.h, partial.value),
        proof if proof is not None else partial.proof,
        PARTIAL_LABEL,
        context=(partial.index, ct),
    )


def lagrange_coefficient(index: int, indices: Sequence[int], q: int) -> int:
    """lambda_index = prod_{j != index} j / (j - index) mod q"""
    numerator = 1
    denominator = 1
    for j in indices:
        if j == index:
            continue
        numerator = (numerator * j) % q
        denominator = (denominator * (j - index)) % q
    return (numerator * inv_mod(denominator, q)) % q


def combine_decryptions(
    key: ThresholdKey,
    ct: Ciphertext,
    partials: Iterable[PartialDecryption],
    encoding: Encoding = Encoding.EXPONENTIAL,
    max_value: Optional[int] = None,
) -> CombinedDecryption:
    """
    Combine des déchiffrements partiels en message clair

    Chaque partiel est vérifié seul. Les échecs sont collectés en
    InvalidPartial et n'interrompent pas la combinaison tant qu'il reste un
    quorum de partiels vérifiés. L'ordre d'arrivée est sans effet.

    Raises:
        InsufficientShares: Si moins de key.threshold partiels sont
            vérifiés ; les partiels rejetés y sont joints
        InvalidGroupElement: Si le chiffré est mal formé
        DecodingError: Si le message ne peut pas être décodé
    """
    params = key.params
    p, q = params.p, params.q
    ct.validate(params)

    accepted = {}
    rejected = []
    for partial in partials:
        index = partial.index
        share = key.public_share(index)
        if share is None:
            failure = InvalidPartial(index, "unknown sealer index")
        elif index in accepted:
            logger.debug("ignoring repeated partial decryption from sealer %s", index)
            continue
        elif not verify_partial(PublicKey(params, share), ct, partial):
            failure = InvalidPartial(index)
        else:
            accepted[index] = partial.value
            continue
        logger.warning("rejected partial decryption: %s", failure)
        rejected.append(failure)

    if len(accepted) < key.threshold:
        raise InsufficientShares(len(accepted), key.threshold, rejected)

    indices = tuple(list(accepted)[:key.threshold])
    c1_x = 1
    for i in indices:
        c1_x = (c1_x * pow(accepted[i], lagrange_coefficient(i, indices, q), p)) % p
    element = (ct.c2 * inv_mod(c1_x, p)) % p
    plaintext = decode_plaintext(element, params, encoding, max_value)
    logger.debug("combined partial decryptions of sealers %s", indices)
    return CombinedDecryption(plaintext, element, indices, tuple(rejected))


class Sealer:
    """
    Détenteur indépendant d'une part de clé

    Seules des valeurs publiques sortent d'un scelleur : sa part publique,
    ses preuves et ses déchiffrements partiels.
    """

    def __init__(self, share: KeyShare, rng: Optional[RandomSource] = None):
        self._share = share
        self._rng = rng

    @property
    def index(self) -> int:
        return self._share.index

    @property
    def public_share(self) -> int:
        return self._share.public_share

    def prove_share(self) -> SigmaProof:
        return prove_share_knowledge(self._share, self._rng)

    def partial_decrypt(self, ct: Ciphertext) -> PartialDecryption:
        return partial_decrypt(self._share, ct, self._rng)

    def partial_decrypt_batch(self, ciphertexts: Sequence[Ciphertext]) -> List[PartialDecryption]:
        return [self.partial_decrypt(ct) for ct in ciphertexts]

    def __repr__(self):
        return f"Sealer(index={self.index})"

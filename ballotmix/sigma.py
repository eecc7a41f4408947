"""
Preuves sigma en trois passes rendues non interactives par Fiat-Shamir.

Une seule forme couvre les preuves du mix-net : connaissance d'un exposant
x tel que public_k = base_k^x pour tout k.

- une base :   preuve de Schnorr de connaissance d'un logarithme discret
- deux bases : preuve de Chaum-Pedersen d'égalité de logarithmes discrets

Prouveur : engage a_k = base_k^w pour un w neuf, dérive
c = H(label, bases, publics, engagements, contexte) mod q et répond
s = w + c*x mod q. Vérifieur : base_k^s == a_k * public_k^c pour tout k et
le défi se recalcule. La vérification est un simple prédicat.
"""
import dataclasses
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple, Type, TypeVar

from Crypto.Hash import SHA256
from Crypto.Util.number import bytes_to_long

from .group import (
    GroupParams, element_from_bytes, element_to_bytes, int_to_bytes,
    is_member, random_exponent, scalar_from_bytes, scalar_to_bytes,
)
from .randomness import RandomSource

P = TypeVar("P", bound="SigmaProof")


def _feed(h, item: Any, params: GroupParams) -> None:
    if isinstance(item, bool):
        raise TypeError("cannot hash a bool")
    if isinstance(item, int):
        h.update(b"i" + int_to_bytes(item, params.element_size))
    elif isinstance(item, (bytes, bytearray)):
        h.update(b"b" + int_to_bytes(len(item), 4) + bytes(item))
    elif isinstance(item, str):
        _feed(h, item.encode("utf-8"), params)
    elif dataclasses.is_dataclass(item) and not isinstance(item, type):
        _feed(h, dataclasses.astuple(item), params)
    elif isinstance(item, (list, tuple)):
        h.update(b"l" + int_to_bytes(len(item), 4))
        for sub in item:
            _feed(h, sub, params)
    else:
        raise TypeError(f"cannot hash {type(item).__name__}")


def fiat_shamir(params: GroupParams, label: str, *items) -> int:
    """
    Dérive un défi dans Z_q à partir d'un label de domaine et d'une transcription

    Args:
        params: Le groupe
        label: Sépare les domaines entre types de preuves
        items: Entiers (largeur fixe), octets, chaînes, dataclasses et
            séquences imbriquées ; les séquences sont préfixées par leur longueur

    Returns:
        int: SHA-256 de la transcription encodée, réduit modulo q

    Raises:
        TypeError: Si un élément n'a pas d'encodage
        ValueError: Si un entier est négatif ou trop large
    """
    h = SHA256.new()
    _feed(h, label, params)
    for item in items:
        _feed(h, item, params)
    return bytes_to_long(h.digest()) % params.q


@dataclass(frozen=True)
class SigmaProof:
    commitments: Tuple[int, ...]
    challenge: int
    response: int

    def to_bytes(self, params: GroupParams) -> bytes:
        return (
            b"".join(element_to_bytes(a, params) for a in self.commitments)
            + scalar_to_bytes(self.challenge, params)
            + scalar_to_bytes(self.response, params)
        )

    @classmethod
    def from_bytes(cls: Type[P], data: bytes, params: GroupParams, arity: int) -> P:
        """
        Décode une preuve à `arity` engagements

        Raises:
            ValueError: Si la longueur est fausse
            InvalidGroupElement: Si un engagement est hors de G_q
        """
        es, ss = params.element_size, params.scalar_size
        if len(data) != arity * es + 2 * ss:
            raise ValueError("proof has the wrong length")
        commitments = tuple(
            element_from_bytes(data[k * es:(k + 1) * es], params) for k in range(arity)
        )
        offset = arity * es
        challenge = scalar_from_bytes(data[offset:offset + ss], params)
        response = scalar_from_bytes(data[offset + ss:], params)
        return cls(commitments, challenge, response)


def prove_linear(
    params: GroupParams,
    bases: Sequence[int],
    publics: Sequence[int],
    witness: int,
    label: str,
    context: Sequence = (),
    rng: Optional[RandomSource] = None,
    proof_type: Type[P] = SigmaProof,
) -> P:
    """
    Prouve la connaissance de x tel que publics[k] = bases[k]^x pour tout k

    Args:
        params: Le groupe
        bases: Les bases de l'énoncé
        publics: Les images du témoin sous chaque base
        witness: L'exposant secret x
        label: Label de domaine, identique à la vérification
        context: Valeurs publiques supplémentaires liées au défi
        rng: La source de l'aléa d'engagement
        proof_type: Sous-classe de SigmaProof à renvoyer

    Returns:
        SigmaProof: (engagements, défi, réponse)
    """
    if len(bases) != len(publics) or not bases:
        raise ValueError("bases and publics must be non-empty and of the same length")
    p, q = params.p, params.q
    w = random_exponent(params, rng)
    commitments = tuple(pow(base, w, p) for base in bases)
    c = fiat_shamir(params, label, tuple(bases), tuple(publics), commitments, tuple(context))
    s = (w + c * witness) % q
    return proof_type(commitments, c, s)


def verify_linear(
    params: GroupParams,
    bases: Sequence[int],
    publics: Sequence[int],
    proof: SigmaProof,
    label: str,
    context: Sequence = (),
) -> bool:
    """
    Vérifie une preuve produite par prove_linear

    Returns:
        bool: True seulement si tous les éléments sont dans G_q, si le défi
            se recalcule et si base_k^s == a_k * public_k^c pour tout k.
            Un contexte sans encodage donne False.
    """
    p, q = params.p, params.q
    commitments = tuple(proof.commitments)
    if len(bases) != len(publics) or len(bases) != len(commitments) or not bases:
        return False
    if not all(is_member(x, params) for x in (*bases, *publics, *commitments)):
        return False
    c, s = proof.challenge, proof.response
    if not (isinstance(c, int) and isinstance(s, int) and 0 <= c < q and 0 <= s < q):
        return False
    try:
        expected = fiat_shamir(params, label, tuple(bases), tuple(publics), commitments, tuple(context))
    except (TypeError, ValueError):
        return False
    if c != expected:
        return False
    for base, public, a in zip(bases, publics, commitments):
        if pow(base, s, p) != (a * pow(public, c, p)) % p:
            return False
    return True


def prove_knowledge(
    params: GroupParams,
    base: int,
    public: int,
    secret: int,
    label: str,
    context: Sequence = (),
    rng: Optional[RandomSource] = None,
) -> SigmaProof:
    """Preuve de Schnorr de connaissance de log_base(public)"""
    return prove_linear(params, (base,), (public,), secret, label, context, rng)


def verify_knowledge(
    params: GroupParams, base: int, public: int, proof: SigmaProof, label: str, context: Sequence = ()
) -> bool:
    return verify_linear(params, (base,), (public,), proof, label, context)

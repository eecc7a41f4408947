"""
Preuve qu'un chiffré est un rechiffrement d'un autre.

Énoncé : ct' / ct = (g^r', h^r') pour un certain r'. C'est une preuve
d'égalité de logarithmes discrets entre (g, c1'/c1) et (h, c2'/c2).
"""
import logging
from typing import Optional, Tuple

from .elgamal import Ciphertext, PublicKey, reencrypt
from .errors import InvalidProof
from .group import GroupParams, inv_mod, is_member, random_exponent, require_member
from .randomness import RandomSource
from .sigma import SigmaProof, prove_linear, verify_linear

logger = logging.getLogger(__name__)

REENCRYPTION_LABEL = "ballotmix/reencryption"


class ReEncryptionProof(SigmaProof):
    """Engagements (g^w, h^w), défi c et réponse s = w + c*r'"""

    @classmethod
    def decode(cls, data: bytes, params: GroupParams) -> "ReEncryptionProof":
        return cls.from_bytes(data, params, 2)


def _ratio(new: Ciphertext, old: Ciphertext, p: int) -> Tuple[int, int]:
    return (new.c1 * inv_mod(old.c1, p)) % p, (new.c2 * inv_mod(old.c2, p)) % p


def prove_reencryption(
    pk: PublicKey,
    ct: Ciphertext,
    ct2: Ciphertext,
    r: int,
    rng: Optional[RandomSource] = None,
) -> ReEncryptionProof:
    """
    Prouve que ct2 = reencrypt(pk, ct, r)

    Args:
        pk: La clé publique des deux chiffrés
        ct: Le chiffré d'origine
        ct2: Le chiffré rechiffré
        r: L'aléa du rechiffrement
        rng: La source de l'aléa d'engagement
    """
    params = pk.params
    ratio = _ratio(ct2, ct, params.p)
    return prove_linear(
        params,
        (params.g, pk.h),
        ratio,
        r,
        REENCRYPTION_LABEL,
        context=(pk.h, ct, ct2),
        rng=rng,
        proof_type=ReEncryptionProof,
    )


def reencrypt_with_proof(
    pk: PublicKey, ct: Ciphertext, rng: Optional[RandomSource] = None
) -> Tuple[Ciphertext, ReEncryptionProof]:
    """
    Rechiffre un chiffré avec un aléa neuf et le prouve

    Raises:
        InvalidGroupElement: Si la clé ou le chiffré est mal formé
        RandomnessFailure: Si aucune entropie sûre n'est disponible
    """
    params = pk.params
    require_member(pk.h, params, "public key")
    ct.validate(params)
    rng = rng or RandomSource()
    r = random_exponent(params, rng)
    ct2 = reencrypt(pk, ct, r)
    proof = prove_reencryption(pk, ct, ct2, r, rng)
    return ct2, proof


def verify_reencryption(pk: PublicKey, ct: Ciphertext, ct2: Ciphertext, proof: SigmaProof) -> bool:
    """
    Vérifie g^s == a * (c1'/c1)^c et h^s == b * (c2'/c2)^c

    Returns:
        bool: False pour toute entrée mal formée ou équation fausse
    """
    params = pk.params
    if not (is_member(pk.h, params) and ct.is_valid(params) and ct2.is_valid(params)):
        return False
    ratio = _ratio(ct2, ct, params.p)
    ok = verify_linear(
        params,
        (params.g, pk.h),
        ratio,
        proof,
        REENCRYPTION_LABEL,
        context=(pk.h, ct, ct2),
    )
    if not ok:
        logger.debug("re-encryption proof rejected")
    return ok


def require_reencryption(pk: PublicKey, ct: Ciphertext, ct2: Ciphertext, proof: SigmaProof) -> None:
    """
    Raises:
        InvalidProof: Si verify_reencryption rejette
    """
    if not verify_reencryption(pk, ct, ct2, proof):
        raise InvalidProof("re-encryption proof rejected")

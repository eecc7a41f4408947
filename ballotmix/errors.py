"""Exceptions levées par le coeur du mix-net."""
from typing import List, Optional


class MixnetError(Exception):
    """Classe de base de toutes les erreurs de ballotmix"""


class InvalidGroupElement(MixnetError, ValueError):
    """Une valeur n'appartient pas au sous-groupe d'ordre premier"""

    def __init__(self, value: Optional[int] = None, what: str = "value"):
        self.value = value
        self.what = what
        super().__init__(f"{what} is not a member of the prime-order subgroup")


class InvalidProof(MixnetError):
    """Une équation de vérification a échoué"""


class InvalidPartial(InvalidProof):
    """Le déchiffrement partiel d'un scelleur n'a pas passé la vérification"""

    def __init__(self, index: int, reason: str = "proof rejected"):
        self.index = index
        self.reason = reason
        super().__init__(f"partial decryption {index}: {reason}")


class InsufficientShares(MixnetError):
    """Moins de déchiffrements partiels vérifiés que le seuil"""

    def __init__(self, found: int, needed: int, rejected: Optional[List[InvalidPartial]] = None):
        self.found = found
        self.needed = needed
        self.rejected = list(rejected or [])
        super().__init__(f"{found} verified partial decryptions, {needed} required")


class RandomnessFailure(MixnetError):
    """Aucune source d'entropie sûre n'est disponible"""


class DecodingError(MixnetError, ValueError):
    """Un élément déchiffré ne correspond à aucun message clair"""

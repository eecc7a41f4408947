"""ballotmix : coeur de mix-net vérifiable par rechiffrement pour bulletins chiffrés."""
from .elgamal import (
    Ciphertext, Encoding, KeyPair, PublicKey, combine, combine_all, decrypt,
    encrypt, generate_keypair, reencrypt,
)
from .errors import (
    DecodingError, InsufficientShares, InvalidGroupElement, InvalidPartial,
    InvalidProof, MixnetError, RandomnessFailure,
)
from .group import DEFAULT_PARAMS, GroupParams
from .randomness import RandomSource
from .reencryption import ReEncryptionProof, reencrypt_with_proof, require_reencryption, verify_reencryption
from .shuffle import ShuffleProof, require_shuffle, shuffle_with_proof, verify_shuffle
from .threshold import (
    CombinedDecryption, DecryptionProof, KeyShare, PartialDecryption, Sealer,
    ThresholdKey, combine_decryptions, deal_shares, partial_decrypt, verify_partial,
)

__version__ = "0.1.0"

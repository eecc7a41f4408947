"""
Regression tests for randomness reuse.

A repeated commitment exponent in two Schnorr-type proofs for the same
secret reveals it; a repeated encryption exponent reveals the ratio of the
plaintexts. Both must stay impossible with a working source.
"""
from .conftest import ReplaySource
from .elgamal import encrypt, encrypt_with_witness
from .group import inv_mod
from .sigma import prove_knowledge

LABEL = "test/nonce-reuse"


def _recover_secret(first, second, q):
    # s1 - s2 = (c1 - c2) * x when both proofs used the same w
    return ((first.response - second.response) * inv_mod(first.challenge - second.challenge, q)) % q


def test_repeated_commitment_leaks_the_secret(keypair, params):
    broken = ReplaySource(424242)
    first = prove_knowledge(params, params.g, keypair.h, keypair.x, LABEL, context=(1,), rng=broken)
    second = prove_knowledge(params, params.g, keypair.h, keypair.x, LABEL, context=(2,), rng=broken)
    assert first.commitments == second.commitments
    assert _recover_secret(first, second, params.q) == keypair.x


def test_fresh_commitments_do_not_leak(keypair, params, rng):
    first = prove_knowledge(params, params.g, keypair.h, keypair.x, LABEL, context=(1,), rng=rng)
    second = prove_knowledge(params, params.g, keypair.h, keypair.x, LABEL, context=(2,), rng=rng)
    assert first.commitments != second.commitments
    assert _recover_secret(first, second, params.q) != keypair.x


def test_repeated_encryption_randomness_links_plaintexts(pk, params):
    p = params.p
    ct1, _ = encrypt_with_witness(pk, 4, randomness=777)
    ct2, _ = encrypt_with_witness(pk, 9, randomness=777)
    assert ct1.c1 == ct2.c1
    # c2 / c2' = g^(m1 - m2) without the secret key
    ratio = (ct2.c2 * inv_mod(ct1.c2, p)) % p
    assert ratio == pow(params.g, 5, p)


def test_fresh_encryptions_do_not_share_c1(pk, rng):
    cts = [encrypt(pk, 1, rng=rng) for _ in range(10)]
    assert len({ct.c1 for ct in cts}) == 10

from collections import Counter
from dataclasses import replace

import pytest

from .elgamal import Ciphertext, decrypt, encrypt, reencrypt
from .errors import InvalidGroupElement, InvalidProof
from .shuffle import (
    ShuffleProof, generate_commitment_chain, generate_permutation_commitment,
    get_challenges, prove_shuffle, require_shuffle, shuffle, shuffle_generators,
    shuffle_with_proof, verify_shuffle,
)

VOTES = [3, 1, 4, 1, 5]


@pytest.fixture
def ballots(pk, rng):
    return [encrypt(pk, v, rng=rng) for v in VOTES]


@pytest.fixture
def shuffled(pk, ballots, rng):
    return shuffle_with_proof(pk, ballots, rng)


def test_shuffle_preserves_plaintext_multiset(keypair, ballots, shuffled):
    outputs, _ = shuffled
    assert len(outputs) == len(ballots)
    assert not set(outputs) & set(ballots)
    assert Counter(decrypt(keypair, ct) for ct in outputs) == Counter(VOTES)


def test_genuine_shuffle_verifies(pk, ballots, shuffled):
    outputs, proof = shuffled
    assert proof.size == len(ballots)
    assert verify_shuffle(pk, ballots, outputs, proof)
    assert verify_shuffle(pk, ballots, outputs, proof)
    require_shuffle(pk, ballots, outputs, proof)


def test_single_ciphertext(pk, keypair, rng):
    ct = encrypt(pk, 8, rng=rng)
    outputs, proof = shuffle_with_proof(pk, [ct], rng)
    assert decrypt(keypair, outputs[0]) == 8
    assert verify_shuffle(pk, [ct], outputs, proof)


def test_substituted_ciphertext_is_rejected(pk, ballots, shuffled, rng):
    outputs, proof = shuffled
    forged = list(outputs)
    forged[2] = encrypt(pk, 9, rng=rng)
    assert not verify_shuffle(pk, ballots, forged, proof)
    with pytest.raises(InvalidProof):
        require_shuffle(pk, ballots, forged, proof)


def test_reencrypted_output_is_rejected(pk, ballots, shuffled):
    outputs, proof = shuffled
    forged = list(outputs)
    forged[0] = reencrypt(pk, forged[0], 5)
    assert not verify_shuffle(pk, ballots, forged, proof)


def test_reordered_outputs_are_rejected(pk, ballots, shuffled):
    outputs, proof = shuffled
    assert not verify_shuffle(pk, ballots, list(reversed(outputs)), proof)


def test_substituted_input_is_rejected(pk, ballots, shuffled, rng):
    outputs, proof = shuffled
    forged = list(ballots)
    forged[0] = encrypt(pk, 3, rng=rng)
    assert not verify_shuffle(pk, forged, outputs, proof)


def test_tampered_proof_is_rejected(pk, params, ballots, shuffled):
    outputs, proof = shuffled
    q = params.q
    assert not verify_shuffle(pk, ballots, outputs, replace(proof, s1=(proof.s1 + 1) % q))
    assert not verify_shuffle(pk, ballots, outputs, replace(proof, s4=(proof.s4 + 1) % q))
    s_hat = list(proof.s_hat)
    s_hat[1] = (s_hat[1] + 1) % q
    assert not verify_shuffle(pk, ballots, outputs, replace(proof, s_hat=tuple(s_hat)))
    commitments = list(proof.permutation_commitments)
    commitments[0], commitments[1] = commitments[1], commitments[0]
    assert not verify_shuffle(pk, ballots, outputs, replace(proof, permutation_commitments=tuple(commitments)))
    assert not verify_shuffle(pk, ballots, outputs, replace(proof, challenge=q))


def test_election_binding(pk, ballots, rng):
    outputs, proof = shuffle_with_proof(pk, ballots, rng, election_id=b"election-a")
    assert verify_shuffle(pk, ballots, outputs, proof, election_id=b"election-a")
    assert not verify_shuffle(pk, ballots, outputs, proof, election_id=b"election-b")


def test_length_mismatch(pk, ballots, shuffled):
    outputs, proof = shuffled
    assert not verify_shuffle(pk, ballots[:-1], outputs[:-1], proof)
    assert not verify_shuffle(pk, ballots, outputs[:-1], proof)
    assert not verify_shuffle(pk, [], [], proof)


def test_malformed_elements(pk, params, ballots, shuffled):
    outputs, proof = shuffled
    forged = list(outputs)
    forged[0] = Ciphertext(params.p - 1, forged[0].c2)
    assert not verify_shuffle(pk, ballots, forged, proof)
    with pytest.raises(InvalidGroupElement):
        shuffle_with_proof(pk, forged)


def test_empty_batch_is_rejected(pk, rng):
    with pytest.raises(ValueError):
        shuffle_with_proof(pk, [], rng)


def test_explicit_permutation(pk, keypair, params, ballots, rng):
    permutation = (4, 2, 0, 1, 3)
    randomizers = rng.exponents(params.q, len(ballots))
    outputs = shuffle(pk, ballots, permutation, randomizers)
    assert [decrypt(keypair, ct) for ct in outputs] == [VOTES[j] for j in permutation]
    assert outputs[0] == reencrypt(pk, ballots[4], randomizers[4])

    proof = prove_shuffle(pk, ballots, outputs, permutation, randomizers, rng)
    assert verify_shuffle(pk, ballots, outputs, proof)

    # a proof for the wrong permutation does not verify
    wrong = prove_shuffle(pk, ballots, outputs, (0, 1, 2, 3, 4), randomizers, rng)
    assert not verify_shuffle(pk, ballots, outputs, wrong)


def test_permutation_is_checked(pk, ballots, params, rng):
    randomizers = rng.exponents(params.q, len(ballots))
    with pytest.raises(ValueError):
        shuffle(pk, ballots, (0, 0, 1, 2, 3), randomizers)
    with pytest.raises(ValueError):
        shuffle(pk, ballots, (0, 1, 2), randomizers)


def test_permutation_commitment(params, rng):
    _, generators = shuffle_generators(params, 3, b"test")
    randoms = rng.exponents(params.q, 3)
    permutation = (2, 0, 1)
    commitments = generate_permutation_commitment(params, permutation, randoms, generators)
    p, g = params.p, params.g
    for i, j in enumerate(permutation):
        assert commitments[j] == (pow(g, randoms[j], p) * generators[i]) % p


def test_commitment_chain(params, rng):
    h, _ = shuffle_generators(params, 2, b"test")
    challenges = rng.exponents(params.q, 2)
    randoms = rng.exponents(params.q, 2)
    chain = generate_commitment_chain(params, h, challenges, randoms)
    p, g = params.p, params.g
    first = (pow(g, randoms[0], p) * pow(h, challenges[0], p)) % p
    assert chain == (first, (pow(g, randoms[1], p) * pow(first, challenges[1], p)) % p)
    with pytest.raises(ValueError):
        generate_commitment_chain(params, h, [], [])


def test_challenges_depend_on_outputs(pk, ballots, shuffled, rng):
    outputs, proof = shuffled
    commitments = proof.permutation_commitments
    challenges = get_challenges(pk, ballots, outputs, commitments, b"test")
    assert len(set(challenges)) == len(ballots)
    forged = list(outputs)
    forged[0] = encrypt(pk, 0, rng=rng)
    assert get_challenges(pk, ballots, forged, commitments, b"test") != challenges


def test_proof_bytes(pk, params, ballots, shuffled):
    outputs, proof = shuffled
    data = proof.to_bytes(params)
    n = len(ballots)
    assert len(data) == 4 + (5 + 2 * n) * params.scalar_size + 2 * n * params.element_size
    decoded = ShuffleProof.from_bytes(data, params)
    assert decoded == proof
    assert verify_shuffle(pk, ballots, outputs, decoded)
    with pytest.raises(ValueError):
        ShuffleProof.from_bytes(data[:-1], params)

import pytest

from .elgamal import (
    Ciphertext, Encoding, PublicKey, combine, combine_all, decrypt,
    decrypt_element, discrete_log, encrypt, encrypt_with_witness, reencrypt,
)
from .errors import DecodingError, InvalidGroupElement


@pytest.mark.parametrize("m", [0, 1, 2, 42, 1000])
def test_encrypt_decrypt_exponential(keypair, pk, rng, m):
    ct = encrypt(pk, m, rng=rng)
    assert ct.is_valid(keypair.params)
    assert decrypt(keypair, ct) == m


def test_encrypt_decrypt_plain(keypair, pk, rng, params):
    message = pow(params.g, 123456789, params.p)
    ct = encrypt(pk, message, Encoding.PLAIN, rng)
    assert decrypt(keypair, ct, Encoding.PLAIN) == message


def test_plain_encoding_rejects_non_members(pk, params, rng):
    with pytest.raises(InvalidGroupElement):
        encrypt(pk, params.p - 1, Encoding.PLAIN, rng)


def test_encryption_is_randomized(pk, rng):
    ct1 = encrypt(pk, 7, rng=rng)
    ct2 = encrypt(pk, 7, rng=rng)
    assert ct1 != ct2


def test_encrypt_with_witness(pk, params, rng):
    ct, r = encrypt_with_witness(pk, 5, rng=rng)
    assert ct.c1 == pow(params.g, r, params.p)
    assert ct.c2 == (pow(params.g, 5, params.p) * pow(pk.h, r, params.p)) % params.p


def test_decoding_bound(keypair, pk, rng):
    ct = encrypt(pk, 5000, rng=rng)
    with pytest.raises(DecodingError):
        decrypt(keypair, ct, max_value=4999)
    assert decrypt(keypair, ct, max_value=5000) == 5000


def test_discrete_log(params):
    for m in (0, 1, 99, 100, 101, 9999):
        assert discrete_log(pow(params.g, m, params.p), params, 10000) == m


def test_decrypt_rejects_malformed_ciphertext(keypair, params):
    with pytest.raises(InvalidGroupElement):
        decrypt(keypair, Ciphertext(params.p - 1, params.g))
    with pytest.raises(InvalidGroupElement):
        decrypt_element(keypair, Ciphertext(params.g, 0))


def test_encrypt_rejects_bad_public_key(params, rng):
    with pytest.raises(InvalidGroupElement):
        encrypt(PublicKey(params, params.p - 1), 1, rng=rng)


def test_reencryption_preserves_plaintext(keypair, pk, rng):
    ct = encrypt(pk, 9, rng=rng)
    ct2 = reencrypt(pk, ct, 31337)
    assert ct2 != ct
    assert decrypt(keypair, ct2) == 9


def test_reencrypt_checks_its_inputs(pk, params, rng):
    ct = encrypt(pk, 9, rng=rng)
    with pytest.raises(InvalidGroupElement):
        reencrypt(pk, Ciphertext(params.p - 1, params.g), 5)
    with pytest.raises(InvalidGroupElement):
        reencrypt(PublicKey(params, params.p - 1), ct, 5)
    for r in (0, params.q, -1):
        with pytest.raises(ValueError):
            reencrypt(pk, ct, r)


def test_homomorphic_tally(keypair, pk, rng, params):
    votes = [1, 0, 1, 1, 0, 1]
    cts = [encrypt(pk, v, rng=rng) for v in votes]
    assert decrypt(keypair, combine(cts[0], cts[2], params)) == 2
    assert decrypt(keypair, combine_all(cts, params)) == sum(votes)
    with pytest.raises(ValueError):
        combine_all([], params)


def test_ciphertext_bytes(pk, params, rng):
    ct = encrypt(pk, 3, rng=rng)
    data = ct.to_bytes(params)
    assert len(data) == 2 * params.element_size
    assert Ciphertext.from_bytes(data, params) == ct
    with pytest.raises(ValueError):
        Ciphertext.from_bytes(data[:-1], params)


def test_secret_not_in_repr(keypair):
    assert str(keypair.x) not in repr(keypair)

"""
Service HTTP de mélange.

Expose le rechiffrement et le mélange avec preuves sur le groupe configuré,
ainsi que leur vérification. Chaque blob est encodé en hexadécimal dans le
format à largeur fixe du coeur. Le service ne garde aucun état entre deux
requêtes.
"""
import logging
from typing import List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from . import config
from .elgamal import Ciphertext, PublicKey
from .errors import RandomnessFailure
from .group import DEFAULT_PARAMS
from .reencryption import ReEncryptionProof, reencrypt_with_proof, verify_reencryption
from .shuffle import ShuffleProof, shuffle_with_proof, verify_shuffle

logger = logging.getLogger(__name__)

app = FastAPI(title="ballotmix mixing service")

params = DEFAULT_PARAMS


class RandomizeRequest(BaseModel):
    public_key: str
    ciphertext: str


class RandomizeResponse(BaseModel):
    ciphertext: str
    proof: str


class ShuffleRequest(BaseModel):
    public_key: str
    ciphertexts: List[str]
    election_id: Optional[str] = None


class ShuffleResponse(BaseModel):
    ciphertexts: List[str]
    proof: str


class VerifyReEncryptionRequest(BaseModel):
    public_key: str
    ciphertext: str
    reencrypted: str
    proof: str


class VerifyShuffleRequest(BaseModel):
    public_key: str
    ciphertexts: List[str]
    shuffled: List[str]
    proof: str
    election_id: Optional[str] = None


class VerificationResult(BaseModel):
    valid: bool


@app.exception_handler(ValueError)
async def malformed_input_handler(request: Request, exc: ValueError):
    logger.info("rejected request to %s: %s", request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(RandomnessFailure)
async def randomness_failure_handler(request: Request, exc: RandomnessFailure):
    logger.error("no secure randomness for %s: %s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "secure randomness unavailable"})


def _unhex(value: str) -> bytes:
    try:
        return bytes.fromhex(value)
    except ValueError as e:
        raise ValueError("blob is not valid hex") from e


def _public_key(value: str) -> PublicKey:
    return PublicKey.from_bytes(_unhex(value), params)


def _ciphertexts(values: List[str]) -> List[Ciphertext]:
    if len(values) > config.MAX_BATCH_SIZE:
        raise HTTPException(status_code=413, detail=f"at most {config.MAX_BATCH_SIZE} ciphertexts per batch")
    return [Ciphertext.from_bytes(_unhex(v), params) for v in values]


def _election_id(value: Optional[str]) -> Optional[bytes]:
    return None if value is None else value.encode("utf-8")


@app.get("/health")
async def health():
    return {"status": "ok", "group_bits": params.p.bit_length()}


@app.post("/randomize", response_model=RandomizeResponse)
def randomize(request: RandomizeRequest):
    """Rechiffre un chiffré et le prouve"""
    pk = _public_key(request.public_key)
    ct = Ciphertext.from_bytes(_unhex(request.ciphertext), params)
    ct2, proof = reencrypt_with_proof(pk, ct)
    return RandomizeResponse(ciphertext=ct2.to_bytes(params).hex(), proof=proof.to_bytes(params).hex())


@app.post("/shuffle", response_model=ShuffleResponse)
def shuffle(request: ShuffleRequest):
    """Mélange un lot et le prouve"""
    pk = _public_key(request.public_key)
    inputs = _ciphertexts(request.ciphertexts)
    outputs, proof = shuffle_with_proof(pk, inputs, election_id=_election_id(request.election_id))
    return ShuffleResponse(
        ciphertexts=[ct.to_bytes(params).hex() for ct in outputs],
        proof=proof.to_bytes(params).hex(),
    )


@app.post("/verify/reencryption", response_model=VerificationResult)
def verify_reencryption_endpoint(request: VerifyReEncryptionRequest):
    pk = _public_key(request.public_key)
    ct = Ciphertext.from_bytes(_unhex(request.ciphertext), params)
    ct2 = Ciphertext.from_bytes(_unhex(request.reencrypted), params)
    proof = ReEncryptionProof.decode(_unhex(request.proof), params)
    return VerificationResult(valid=verify_reencryption(pk, ct, ct2, proof))


@app.post("/verify/shuffle", response_model=VerificationResult)
def verify_shuffle_endpoint(request: VerifyShuffleRequest):
    pk = _public_key(request.public_key)
    inputs = _ciphertexts(request.ciphertexts)
    outputs = _ciphertexts(request.shuffled)
    proof = ShuffleProof.from_bytes(_unhex(request.proof), params)
    valid = verify_shuffle(pk, inputs, outputs, proof, _election_id(request.election_id))
    return VerificationResult(valid=valid)


def main():
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    uvicorn.run(app, host=config.API_HOST, port=config.API_PORT)


if __name__ == "__main__":
    main()

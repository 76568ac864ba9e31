"""DeProof: canonical digests, signatures, nonces, generation and validation."""

from deproof.proof.canonical import canonicalize
from deproof.proof.digest import digest, digest_hex, proof_digest
from deproof.proof.generator import ClientNonceCounter, ProofGenerator
from deproof.proof.models import PROOF_FIELD, DeProof, attach_proof, strip_proof
from deproof.proof.nonce_store import InMemoryNonceStore, KeyedLock, NonceStore
from deproof.proof.signing import address_of, recover_address, sign
from deproof.proof.validator import ProofValidator

__all__ = [
    "PROOF_FIELD",
    "ClientNonceCounter",
    "DeProof",
    "InMemoryNonceStore",
    "KeyedLock",
    "NonceStore",
    "ProofGenerator",
    "ProofValidator",
    "address_of",
    "attach_proof",
    "canonicalize",
    "digest",
    "digest_hex",
    "proof_digest",
    "recover_address",
    "sign",
]

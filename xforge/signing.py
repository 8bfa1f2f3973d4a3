"""Ed25519 key generation, signing and verification."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

_HALF = 32
_PRIVATE_LEN = 64
_PUBLIC_LEN = 32
_SIGNATURE_LEN = 64


class SigningError(Exception):
    """Raised when keys, signatures or signed files cannot be handled."""


@dataclass(frozen=True)
class KeyPair:
    """A hex-encoded key pair; the private key holds the secret then the public key."""

    public_key_hex: str
    private_key_hex: str


def _public_bytes(key: Ed25519PrivateKey) -> bytes:
    return key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)


def generate_keypair() -> KeyPair:
    """Generate a new key pair from the operating system's random source."""
    key = Ed25519PrivateKey.generate()
    secret = key.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption())
    public = _public_bytes(key)
    return KeyPair(public_key_hex=public.hex(), private_key_hex=(secret + public).hex())


def _decode_hex(value: str, length: int, what: str) -> bytes:
    try:
        raw = bytes.fromhex(value.strip())
    except ValueError as error:
        raise SigningError(f"invalid {what} hex: {error}") from error
    if len(raw) != length:
        raise SigningError(f"{what} must be {length} bytes, got {len(raw)}")
    return raw


def parse_private_key_hex(value: str) -> bytes:
    """Decode a 64-byte private key from hex."""
    return _decode_hex(value, _PRIVATE_LEN, "private key")


def parse_public_key_hex(value: str) -> bytes:
    """Decode a 32-byte public key from hex."""
    return _decode_hex(value, _PUBLIC_LEN, "public key")


def sign(private_key: bytes, payload: bytes) -> bytes:
    """Sign a payload with a 64-byte private key and return the signature."""
    if len(private_key) != _PRIVATE_LEN:
        raise SigningError(f"private key must be {_PRIVATE_LEN} bytes, got {len(private_key)}")
    key = Ed25519PrivateKey.from_private_bytes(bytes(private_key[:_HALF]))
    if _public_bytes(key) != bytes(private_key[_HALF:]):
        raise SigningError("private key does not match its public key half")
    return key.sign(bytes(payload))


def verify(public_key: bytes, payload: bytes, signature: bytes) -> bool:
    """Return whether the signature over the payload is valid for the key."""
    if len(public_key) != _PUBLIC_LEN:
        raise SigningError(f"public key must be {_PUBLIC_LEN} bytes, got {len(public_key)}")
    if len(signature) != _SIGNATURE_LEN:
        raise SigningError(f"signature must be {_SIGNATURE_LEN} bytes, got {len(signature)}")
    try:
        key = Ed25519PublicKey.from_public_bytes(bytes(public_key))
        key.verify(bytes(signature), bytes(payload))
    except InvalidSignature:
        return False
    except ValueError as error:
        raise SigningError(f"invalid public key: {error}") from error
    return True


def sign_file(file: str | Path, private_key_hex: str, out: str | Path | None = None) -> Path:
    """Write a detached signature for a file; defaults to `<file>.sig`."""
    file = Path(file)
    try:
        payload = file.read_bytes()
    except OSError as error:
        raise SigningError(f"failed to read file '{file}': {error}") from error
    signature = sign(parse_private_key_hex(private_key_hex), payload)
    out_path = Path(out) if out is not None else Path(f"{file}.sig")
    try:
        out_path.write_bytes(signature)
    except OSError as error:
        raise SigningError(f"failed to write signature '{out_path}': {error}") from error
    return out_path


def verify_file(file: str | Path, signature: str | Path, public_key_hex: str) -> bool:
    """Check a file against a detached signature file."""
    file = Path(file)
    signature = Path(signature)
    try:
        payload = file.read_bytes()
    except OSError as error:
        raise SigningError(f"failed to read file '{file}': {error}") from error
    try:
        signature_bytes = signature.read_bytes()
    except OSError as error:
        raise SigningError(f"failed to read signature '{signature}': {error}") from error
    return verify(parse_public_key_hex(public_key_hex), payload, signature_bytes)
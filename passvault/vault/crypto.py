"""
Vault Crypto Core — Key derivation and symmetric encryption/decryption.

Implements the cipher engine shared by every vault layer:
- Key derivation: PBKDF2-HMAC-SHA256(secret, salt) → key sized by algorithm
- Encryption: closed matrix of {AES, DES, DESede} × {CBC, ECB, GCM}
- Text-safe output: ciphertext (plus GCM tag) is returned base64-encoded

Security Note:
    Never log plaintext, ciphertext or key material.
    A single IV is generated per account and reused for every encryption
    under that account. This keeps the on-disk format stable but means GCM
    nonces repeat; see DESIGN.md.
"""
import os
import base64
import secrets
import binascii
import logging
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.decrepit.ciphers.algorithms import TripleDES

from ..exceptions import (
    UnsupportedAlgorithm,
    AuthenticationFailure,
    PaddingFailure,
)

logger = logging.getLogger("passvault.vault")

KDF_ITERATIONS = 65_536
IV_SIZE = 16  # bytes, generated once per account
SALT_SIZE = 16  # bytes, base64-encoded into the salt text
GCM_TAG_SIZE = 16  # 128-bit authentication tag


class Algorithm(str, Enum):
    AES = "AES"
    DES = "DES"
    DESede = "DESede"


class Mode(str, Enum):
    CBC = "CBC"
    ECB = "ECB"
    GCM = "GCM"


# Derived key length in bytes for each algorithm.
KEY_SIZES = {
    Algorithm.AES: 32,
    Algorithm.DES: 8,
    Algorithm.DESede: 24,
}

# Cipher block size in bytes; CBC IVs are truncated to this length.
BLOCK_SIZES = {
    Algorithm.AES: 16,
    Algorithm.DES: 8,
    Algorithm.DESede: 8,
}


# ---------------------------------------------------------------------------
# Algorithm/mode resolution
# ---------------------------------------------------------------------------

def resolve_algorithm(value: "Algorithm | str") -> Algorithm:
    """Coerce a string into a supported Algorithm.

    Raises:
        UnsupportedAlgorithm: If value is not one of AES, DES, DESede.
    """
    try:
        return Algorithm(value)
    except ValueError as err:
        raise UnsupportedAlgorithm(f"Unsupported algorithm: {value}") from err


def resolve_mode(value: "Mode | str") -> Mode:
    """Coerce a string into a supported Mode.

    Raises:
        UnsupportedAlgorithm: If value is not one of CBC, ECB, GCM.
    """
    try:
        return Mode(value)
    except ValueError as err:
        raise UnsupportedAlgorithm(f"Unsupported cipher mode: {value}") from err


def check_combination(algorithm: "Algorithm | str", mode: "Mode | str") -> tuple[Algorithm, Mode]:
    """Validate an algorithm/mode pair against the supported matrix.

    GCM requires a 128-bit block cipher, so it is only paired with AES.

    Returns:
        Tuple of (Algorithm, Mode).

    Raises:
        UnsupportedAlgorithm: If either value or the pair is unsupported.
    """
    algo = resolve_algorithm(algorithm)
    mode_ = resolve_mode(mode)
    if mode_ is Mode.GCM and algo is not Algorithm.AES:
        raise UnsupportedAlgorithm(
            f"Mode GCM is not available for algorithm {algo.value}"
        )
    return algo, mode_


# ---------------------------------------------------------------------------
# Key and IV generation
# ---------------------------------------------------------------------------

def derive_key(secret: str, algorithm: "Algorithm | str", salt: str) -> bytes:
    """Derive a key from a secret using PBKDF2-HMAC-SHA256.

    Args:
        secret: Master password or fixed account-scoped identifier.
        algorithm: Target algorithm; selects the key length.
        salt: Salt text, used as its UTF-8 bytes.

    Returns:
        Derived key bytes (32 for AES, 8 for DES, 24 for DESede).

    Raises:
        UnsupportedAlgorithm: If algorithm is outside the supported set.
    """
    algo = resolve_algorithm(algorithm)
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_SIZES[algo],
        salt=salt.encode("utf-8"),
        iterations=KDF_ITERATIONS,
    )
    return kdf.derive(secret.encode("utf-8"))


def generate_iv() -> bytes:
    """Return 16 cryptographically random bytes."""
    return os.urandom(IV_SIZE)


def generate_salt() -> str:
    """Return a new random salt as base64 text."""
    return base64.b64encode(secrets.token_bytes(SALT_SIZE)).decode("ascii")


# ---------------------------------------------------------------------------
# Encryption / decryption
# ---------------------------------------------------------------------------

def _block_cipher(algorithm: Algorithm, key: bytes):
    if algorithm is Algorithm.AES:
        return algorithms.AES(key)
    return TripleDES(key)


def _block_mode(algorithm: Algorithm, mode: Mode, iv: bytes):
    if mode is Mode.CBC:
        return modes.CBC(iv[:BLOCK_SIZES[algorithm]])
    return modes.ECB()


def encrypt(
    plaintext: str,
    algorithm: "Algorithm | str",
    mode: "Mode | str",
    key: bytes,
    iv: bytes,
) -> str:
    """Encrypt UTF-8 text with the given algorithm/mode/key/IV.

    GCM output is ``ciphertext || tag``; CBC and ECB use PKCS#7 padding.

    Returns:
        Base64-encoded ciphertext.

    Raises:
        UnsupportedAlgorithm: If the algorithm/mode pair is unsupported.
    """
    algo, mode_ = check_combination(algorithm, mode)
    data = plaintext.encode("utf-8")
    if mode_ is Mode.GCM:
        ct = AESGCM(key).encrypt(iv, data, None)
    else:
        padder = padding.PKCS7(BLOCK_SIZES[algo] * 8).padder()
        padded = padder.update(data) + padder.finalize()
        encryptor = Cipher(
            _block_cipher(algo, key), _block_mode(algo, mode_, iv)
        ).encryptor()
        ct = encryptor.update(padded) + encryptor.finalize()
    return base64.b64encode(ct).decode("ascii")


def decrypt(
    ciphertext: str,
    algorithm: "Algorithm | str",
    mode: "Mode | str",
    key: bytes,
    iv: bytes,
) -> str:
    """Decrypt base64 ciphertext produced by ``encrypt``.

    Bytes that are not valid UTF-8 are replaced rather than rejected, so a
    non-authenticated mode decrypted with the wrong key may return garbage.

    Raises:
        UnsupportedAlgorithm: If the algorithm/mode pair is unsupported.
        AuthenticationFailure: If the GCM tag does not match.
        PaddingFailure: If the input is not valid base64, is not a whole
            number of blocks, or carries invalid padding.
    """
    algo, mode_ = check_combination(algorithm, mode)
    try:
        raw = base64.b64decode(ciphertext, validate=True)
    except (binascii.Error, ValueError) as err:
        raise PaddingFailure("Ciphertext is not valid base64") from err
    if mode_ is Mode.GCM:
        if len(raw) < GCM_TAG_SIZE:
            raise AuthenticationFailure(
                f"Ciphertext too short: {len(raw)} bytes "
                f"(minimum {GCM_TAG_SIZE})"
            )
        try:
            data = AESGCM(key).decrypt(iv, raw, None)
        except InvalidTag as err:
            raise AuthenticationFailure("Authentication tag mismatch") from err
        except ValueError as err:
            raise AuthenticationFailure(str(err)) from err
    else:
        try:
            decryptor = Cipher(
                _block_cipher(algo, key), _block_mode(algo, mode_, iv)
            ).decryptor()
            padded = decryptor.update(raw) + decryptor.finalize()
            unpadder = padding.PKCS7(BLOCK_SIZES[algo] * 8).unpadder()
            data = unpadder.update(padded) + unpadder.finalize()
        except ValueError as err:
            raise PaddingFailure(str(err)) from err
    return data.decode("utf-8", errors="replace")


# ---------------------------------------------------------------------------
# Session cipher
# ---------------------------------------------------------------------------

class SessionCipher(BaseModel):
    """Encryption settings of an authenticated session.

    Holds the master-password-derived key together with the account's
    algorithm, mode and IV. The key is excluded from repr.
    """

    algorithm: Algorithm
    mode: Mode
    key: bytes = Field(repr=False)
    iv: bytes = Field(repr=False)

    model_config = ConfigDict(frozen=True)

    def encrypt(self, plaintext: str) -> str:
        return encrypt(plaintext, self.algorithm, self.mode, self.key, self.iv)

    def decrypt(self, ciphertext: str) -> str:
        return decrypt(ciphertext, self.algorithm, self.mode, self.key, self.iv)

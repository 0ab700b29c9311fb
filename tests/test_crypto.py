"""
Tests for the vault cipher engine.

Tests cover:
- IV and salt generation
- Key derivation sizes and determinism
- Encrypt/decrypt over the supported algorithm/mode matrix
- Failure modes for wrong keys, wrong IVs and malformed input
"""
import base64
import pytest

from passvault.exceptions import (
    AuthenticationFailure,
    DecryptionError,
    PaddingFailure,
    UnsupportedAlgorithm,
)
from passvault.vault.crypto import (
    Algorithm,
    Mode,
    SessionCipher,
    check_combination,
    decrypt,
    derive_key,
    encrypt,
    generate_iv,
    generate_salt,
)

TEST_PASSWORD = "TestMasterPassword123!"
TEST_SALT = base64.b64encode(b"TestSalt1234567890").decode("ascii")
PLAIN_TEXT = "MySecretPassword"

SUPPORTED = [
    (Algorithm.AES, Mode.CBC),
    (Algorithm.AES, Mode.ECB),
    (Algorithm.AES, Mode.GCM),
    (Algorithm.DES, Mode.CBC),
    (Algorithm.DES, Mode.ECB),
    (Algorithm.DESede, Mode.CBC),
    (Algorithm.DESede, Mode.ECB),
]


@pytest.fixture(scope="module")
def keys():
    """Derive one key per algorithm for the right and the wrong password."""
    return {
        algo: (
            derive_key(TEST_PASSWORD, algo, TEST_SALT),
            derive_key("WrongPassword", algo, TEST_SALT),
        )
        for algo in Algorithm
    }


# --- Test Key Material ---

class TestKeyMaterial:
    """Tests for IV, salt and key derivation."""

    def test_generate_iv_is_16_bytes(self):
        """Test that IVs are 16 random bytes."""
        iv = generate_iv()
        assert isinstance(iv, bytes)
        assert len(iv) == 16
        assert generate_iv() != iv

    def test_generate_salt_is_base64_text(self):
        """Test that salts are base64 text of 16 bytes."""
        salt = generate_salt()
        assert isinstance(salt, str)
        assert len(base64.b64decode(salt)) == 16

    @pytest.mark.parametrize("algorithm, size", [
        (Algorithm.AES, 32),
        (Algorithm.DES, 8),
        (Algorithm.DESede, 24),
    ])
    def test_key_size_per_algorithm(self, keys, algorithm, size):
        """Test that the key length follows the algorithm."""
        assert len(keys[algorithm][0]) == size

    def test_derivation_is_deterministic(self, keys):
        """Test that the same inputs derive the same key."""
        assert derive_key(TEST_PASSWORD, "AES", TEST_SALT) == keys[Algorithm.AES][0]

    def test_salt_changes_key(self, keys):
        """Test that a different salt derives a different key."""
        assert derive_key(TEST_PASSWORD, "AES", generate_salt()) != keys[Algorithm.AES][0]

    def test_unsupported_algorithm(self):
        """Test that an unknown algorithm is rejected."""
        with pytest.raises(UnsupportedAlgorithm):
            derive_key(TEST_PASSWORD, "INVALID_ALGO", TEST_SALT)

    def test_unsupported_algorithm_is_value_error(self):
        """Test that UnsupportedAlgorithm can be caught as ValueError."""
        with pytest.raises(ValueError):
            derive_key(TEST_PASSWORD, "Blowfish", TEST_SALT)


# --- Test Algorithm/Mode Matrix ---

class TestCipherMatrix:
    """Tests for the closed algorithm/mode matrix."""

    def test_string_values_resolve(self):
        """Test that on-disk strings resolve to enums."""
        assert check_combination("DESede", "CBC") == (Algorithm.DESede, Mode.CBC)

    @pytest.mark.parametrize("algorithm", [Algorithm.DES, Algorithm.DESede])
    def test_gcm_requires_aes(self, keys, algorithm):
        """Test that GCM is refused for 64-bit block ciphers."""
        with pytest.raises(UnsupportedAlgorithm):
            encrypt(PLAIN_TEXT, algorithm, Mode.GCM, keys[algorithm][0], generate_iv())

    def test_unknown_mode(self, keys):
        """Test that an unknown mode is rejected."""
        with pytest.raises(UnsupportedAlgorithm):
            encrypt(PLAIN_TEXT, "AES", "CTR", keys[Algorithm.AES][0], generate_iv())

    @pytest.mark.parametrize("algorithm, mode", SUPPORTED)
    def test_encrypt_decrypt(self, keys, algorithm, mode):
        """Test that decrypt restores the original text."""
        iv = generate_iv()
        key = keys[algorithm][0]
        encrypted = encrypt(PLAIN_TEXT, algorithm, mode, key, iv)
        assert encrypted != PLAIN_TEXT
        assert decrypt(encrypted, algorithm, mode, key, iv) == PLAIN_TEXT

    def test_unicode_and_empty_text(self, keys):
        """Test non-ASCII and empty plaintext."""
        iv = generate_iv()
        key = keys[Algorithm.AES][0]
        for text in ("", "pässwörd ✓ 密码"):
            encrypted = encrypt(text, "AES", "CBC", key, iv)
            assert decrypt(encrypted, "AES", "CBC", key, iv) == text

    def test_gcm_appends_tag(self, keys):
        """Test that GCM output is ciphertext plus a 16 byte tag."""
        encrypted = encrypt(PLAIN_TEXT, "AES", "GCM", keys[Algorithm.AES][0], generate_iv())
        assert len(base64.b64decode(encrypted)) == len(PLAIN_TEXT) + 16

    def test_ecb_ignores_iv(self, keys):
        """Test that ECB output does not depend on the IV."""
        key = keys[Algorithm.AES][0]
        first = encrypt(PLAIN_TEXT, "AES", "ECB", key, generate_iv())
        second = encrypt(PLAIN_TEXT, "AES", "ECB", key, generate_iv())
        assert first == second


# --- Test Decryption Failures ---

class TestDecryptionFailures:
    """Tests for wrong keys, wrong IVs and malformed ciphertext."""

    def test_gcm_wrong_key(self, keys):
        """Test that GCM rejects a wrong key."""
        right, wrong = keys[Algorithm.AES]
        iv = generate_iv()
        encrypted = encrypt(PLAIN_TEXT, "AES", "GCM", right, iv)
        with pytest.raises(AuthenticationFailure):
            decrypt(encrypted, "AES", "GCM", wrong, iv)

    def test_gcm_wrong_iv(self, keys):
        """Test that GCM rejects a wrong IV."""
        key = keys[Algorithm.AES][0]
        encrypted = encrypt(PLAIN_TEXT, "AES", "GCM", key, generate_iv())
        with pytest.raises(AuthenticationFailure):
            decrypt(encrypted, "AES", "GCM", key, generate_iv())

    def test_gcm_tampered_ciphertext(self, keys):
        """Test that a flipped byte breaks the GCM tag."""
        key = keys[Algorithm.AES][0]
        iv = generate_iv()
        raw = bytearray(base64.b64decode(encrypt(PLAIN_TEXT, "AES", "GCM", key, iv)))
        raw[0] ^= 0x01
        with pytest.raises(AuthenticationFailure):
            decrypt(base64.b64encode(bytes(raw)).decode(), "AES", "GCM", key, iv)

    @pytest.mark.parametrize("algorithm, mode", [
        combo for combo in SUPPORTED if combo[1] is not Mode.GCM
    ])
    def test_block_mode_wrong_key(self, keys, algorithm, mode):
        """Test that block modes either fail padding or return other text."""
        right, wrong = keys[algorithm]
        iv = generate_iv()
        encrypted = encrypt(PLAIN_TEXT, algorithm, mode, right, iv)
        try:
            result = decrypt(encrypted, algorithm, mode, wrong, iv)
        except PaddingFailure:
            return
        assert result != PLAIN_TEXT

    def test_cbc_wrong_iv_diverges(self, keys):
        """Test that CBC with another IV does not restore the text."""
        key = keys[Algorithm.AES][0]
        encrypted = encrypt(PLAIN_TEXT, "AES", "CBC", key, generate_iv())
        try:
            result = decrypt(encrypted, "AES", "CBC", key, generate_iv())
        except PaddingFailure:
            return
        assert result != PLAIN_TEXT

    def test_invalid_base64(self, keys):
        """Test that non-base64 input is a decryption error."""
        with pytest.raises(PaddingFailure):
            decrypt("not base64!!", "AES", "CBC", keys[Algorithm.AES][0], generate_iv())

    def test_partial_block(self, keys):
        """Test that a ciphertext shorter than one block is rejected."""
        short = base64.b64encode(b"abc").decode()
        with pytest.raises(DecryptionError):
            decrypt(short, "AES", "CBC", keys[Algorithm.AES][0], generate_iv())
        with pytest.raises(DecryptionError):
            decrypt(short, "AES", "GCM", keys[Algorithm.AES][0], generate_iv())

    @pytest.mark.parametrize("nonce", [b"", b"iv"])
    def test_gcm_short_nonce(self, keys, nonce):
        """Test that GCM with an unusable nonce is an authentication failure."""
        key = keys[Algorithm.AES][0]
        encrypted = encrypt(PLAIN_TEXT, "AES", "GCM", key, generate_iv())
        with pytest.raises(AuthenticationFailure):
            decrypt(encrypted, "AES", "GCM", key, nonce)


# --- Test Session Cipher ---

class TestSessionCipher:
    """Tests for the bound session cipher."""

    def test_round_trip(self, keys):
        """Test encrypt/decrypt through the bound cipher."""
        cipher = SessionCipher(
            algorithm=Algorithm.AES, mode=Mode.GCM,
            key=keys[Algorithm.AES][0], iv=generate_iv(),
        )
        assert cipher.decrypt(cipher.encrypt(PLAIN_TEXT)) == PLAIN_TEXT

    def test_repr_hides_key(self, keys):
        """Test that key material does not appear in repr."""
        key = keys[Algorithm.AES][0]
        cipher = SessionCipher(
            algorithm=Algorithm.AES, mode=Mode.CBC, key=key, iv=generate_iv(),
        )
        assert repr(key) not in repr(cipher)
        assert "key=" not in repr(cipher)

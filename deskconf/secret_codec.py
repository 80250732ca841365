#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import base64
import binascii
import logging
import os
import threading
from typing import Callable, Optional, Tuple

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from deskconf.constants import PASSWORD_ENC_VERSION


logger = logging.getLogger(__name__)

NONCE_LEN = 12
TAG_LEN = 16


def derive_storage_key(material: bytes) -> bytes:
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=b"deskconf v1",
        info=b"deskconf secret field",
    )
    return hkdf.derive(bytes(material))


class SecretCodec:
    """Versioned at-rest encryption for individual secret fields.

    Values written by encrypt_*() look like "00" + base64(nonce || AES-GCM).
    Anything else (legacy plaintext, another version, a value from another
    machine) decrypts to itself with was_encrypted=False, and needs_rewrite
    set when non-empty so the caller stores it again in the current format.
    Nothing here raises.
    """

    def __init__(self, key_source: Callable[[], bytes], version: str = PASSWORD_ENC_VERSION) -> None:
        self._key_source = key_source
        self.version = version
        self._key: Optional[bytes] = None
        self._key_lock = threading.Lock()

    def _aes(self) -> AESGCM:
        with self._key_lock:
            if self._key is None:
                self._key = derive_storage_key(self._key_source() or b"")
            return AESGCM(self._key)

    def _seal(self, plaintext: bytes) -> str:
        nonce = os.urandom(NONCE_LEN)
        ct = self._aes().encrypt(nonce, plaintext, self.version.encode("ascii"))
        return self.version + base64.b64encode(nonce + ct).decode("ascii")

    def _open(self, value: str) -> Optional[bytes]:
        if len(value) <= len(self.version) or not value.startswith(self.version):
            return None
        payload = value[len(self.version):]
        try:
            raw = base64.b64decode(payload.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError, ValueError):
            return None
        if len(raw) < (NONCE_LEN + TAG_LEN):
            return None
        try:
            return self._aes().decrypt(raw[:NONCE_LEN], raw[NONCE_LEN:], self.version.encode("ascii"))
        except Exception:
            return None

    def decrypt_str(self, value: str) -> Tuple[str, bool, bool]:
        value = "" if value is None else str(value)
        raw = self._open(value)
        if raw is not None:
            try:
                return raw.decode("utf-8"), True, False
            except UnicodeDecodeError:
                pass
        return value, False, bool(value)

    def encrypt_str(self, plain: str) -> str:
        plain = "" if plain is None else str(plain)
        if not plain:
            return plain
        if self.decrypt_str(plain)[1]:
            logger.error("Duplicate encryption!")
            return plain
        try:
            return self._seal(plain.encode("utf-8"))
        except Exception as e:
            logger.error("Failed to encrypt secret field: %s: %s", type(e).__name__, e)
            return plain

    def decrypt_bytes(self, value: bytes) -> Tuple[bytes, bool, bool]:
        value = bytes(value or b"")
        try:
            text = value.decode("ascii")
        except UnicodeDecodeError:
            return value, False, bool(value)
        raw = self._open(text)
        if raw is None:
            return value, False, bool(value)
        return raw, True, False

    def encrypt_bytes(self, plain: bytes) -> bytes:
        plain = bytes(plain or b"")
        if not plain:
            return plain
        if self.decrypt_bytes(plain)[1]:
            logger.error("Duplicate encryption!")
            return plain
        try:
            return self._seal(plain).encode("ascii")
        except Exception as e:
            logger.error("Failed to encrypt secret field: %s: %s", type(e).__name__, e)
            return plain

#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import secrets
import threading
from typing import Callable, List, Optional, Tuple

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from deskconf import hostinfo
from deskconf.constants import (
    ID_MAC_MASK,
    ID_RANDOM_MAX,
    ID_RANDOM_MIN,
    ID_RETRIES,
    PASSWORD_CHARS,
)
from deskconf.domains import ConfigDomain
from deskconf.records import Identity
from deskconf.secret_codec import SecretCodec
from deskconf.settings import Settings
from deskconf.storage import RecordStore


logger = logging.getLogger(__name__)

KeyPair = Tuple[bytes, bytes]


def generate_keypair() -> KeyPair:
    priv = Ed25519PrivateKey.generate()
    secret_raw = priv.private_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PrivateFormat.Raw,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_raw = priv.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    )
    return secret_raw, public_raw


def random_id() -> str:
    return str(ID_RANDOM_MIN + secrets.randbelow(ID_RANDOM_MAX - ID_RANDOM_MIN))


def mac_to_id(mac: bytes) -> str:
    value = 0
    for b in bytes(mac)[2:]:
        value = ((value << 8) | b) & 0xFFFFFFFF
    return str(value & ID_MAC_MASK)


def auto_password(length: int) -> str:
    return "".join(secrets.choice(PASSWORD_CHARS) for _ in range(max(0, int(length))))


class IdentityManager:
    """Device id, permanent password, salt, key confirmations and signing keys.

    Id resolution on load:

    1. enc_id decrypts under the current codec -> trusted.
    2. Otherwise a plaintext id is trusted as a legacy identity only if the
       file was last modified before this executable was built (within
       settings.id_grace_seconds), enc_id is empty and the id is not itself
       ciphertext.
    3. Otherwise a new id is generated (ID_RETRIES attempts); on failure the
       id stays empty and get_id() retries later.

    The record is written back whenever resolution changed it, which also
    moves a legacy plaintext id into enc_id.

    The signing keypair is cached apart from the domain, under its own lock,
    because the codec may need it while the identity record is being loaded.
    """

    def __init__(
        self,
        store: RecordStore,
        path: str,
        codec: SecretCodec,
        settings: Settings,
        id_source: Optional[Callable[[], Optional[str]]] = None,
        exe_time_source: Optional[Callable[[], float]] = None,
    ) -> None:
        self._store = store
        self.path = path
        self.codec = codec
        self._settings = settings
        self._id_source = id_source
        self._exe_time = exe_time_source or hostinfo.exe_time
        self.domain: ConfigDomain[Identity] = ConfigDomain(
            "identity",
            path,
            Identity,
            store,
            after_load=self._after_load,
            before_store=self._before_store,
        )
        self._keypair: Optional[KeyPair] = None
        self._keypair_lock = threading.Lock()
        self._pending: List[threading.Thread] = []
        self._pending_lock = threading.Lock()

    # -- load/store transforms ---------------------------------------------

    def _legacy_id_trusted(self, rec: Identity) -> bool:
        mtime = self._store.modified_time(self.path)
        if mtime is None:
            return False
        if mtime - float(self._settings.id_grace_seconds) >= self._exe_time():
            return False
        return bool(rec.id) and not rec.enc_id and not self.codec.decrypt_str(rec.id)[1]

    def _after_load(self, rec: Identity) -> bool:
        store = False
        password, _, rewrite = self.codec.decrypt_str(rec.password)
        rec.password = password
        store = store or rewrite

        loaded_id = rec.id
        trusted = False
        dec_id, encrypted, rewrite = self.codec.decrypt_str(rec.enc_id)
        if encrypted:
            rec.id = dec_id
            trusted = True
            store = store or rewrite
        elif self._legacy_id_trusted(rec):
            trusted = True
            store = True
            logger.info("Migrating legacy plaintext id %s", rec.id)

        if not trusted:
            rec.id = self.generate_id()
            if rec.id or rec.id != loaded_id:
                store = True
        return store

    def _before_store(self, rec: Identity) -> Identity:
        rec.password = self.codec.encrypt_str(rec.password)
        rec.enc_id = self.codec.encrypt_str(rec.id)
        rec.id = ""
        return rec

    # -- id generation ------------------------------------------------------

    def auto_id(self) -> Optional[str]:
        if self._id_source is not None:
            return self._id_source()
        if self._settings.random_id:
            return random_id()
        mac = hostinfo.mac_address()
        if not mac:
            return None
        return mac_to_id(mac)

    def generate_id(self) -> str:
        for _ in range(ID_RETRIES):
            try:
                new_id = self.auto_id()
            except Exception as e:
                logger.error("Id source failed: %s: %s", type(e).__name__, e)
                new_id = None
            if new_id:
                return new_id
            logger.error("Failed to generate new id")
        return ""

    # -- keypair ------------------------------------------------------------

    def get_keypair(self) -> KeyPair:
        with self._keypair_lock:
            if self._keypair is not None:
                return self._keypair
            # Straight from disk: going through the domain here could re-enter
            # its load when the codec is keyed off this keypair.
            rec = self._store.load(self.path, Identity)
            key_pair = rec.key_pair
            generated = False
            if not key_pair[0]:
                key_pair = generate_keypair()
                generated = True
            self._keypair = key_pair
        if generated:
            self._persist_keypair_async(key_pair)
        return key_pair

    def _persist_keypair_async(self, key_pair: KeyPair) -> None:
        def run() -> None:
            try:
                self.domain.mutate(lambda rec: setattr(rec, "key_pair", key_pair))
            except Exception as e:
                logger.error("Failed to persist keypair: %s: %s", type(e).__name__, e)

        t = threading.Thread(target=run, name="deskconf-keypair", daemon=True)
        with self._pending_lock:
            self._pending = [p for p in self._pending if p.is_alive()]
            self._pending.append(t)
        t.start()

    def join_background(self, timeout: Optional[float] = None) -> None:
        with self._pending_lock:
            pending = list(self._pending)
        for t in pending:
            t.join(timeout)

    # -- accessors ----------------------------------------------------------

    def load_identity(self) -> Identity:
        return self.domain.get()

    def store_identity(self, rec: Identity) -> bool:
        return self.domain.set(rec)

    def get_id(self) -> str:
        current = self.domain.read(lambda rec: rec.id)
        if not current:
            new_id = self.generate_id()
            if new_id:
                current = new_id
                self.set_id(current)
        return current

    def get_id_or(self, default: str) -> str:
        current = self.domain.read(lambda rec: rec.id)
        return current if current else default

    def set_id(self, new_id: str) -> bool:
        return self.domain.mutate(lambda rec: setattr(rec, "id", str(new_id)))

    def update_id(self) -> str:
        old_id = self.get_id()
        new_id = random_id()
        self.set_id(new_id)
        logger.info("id updated from %s to %s", old_id, new_id)
        return new_id

    def get_permanent_password(self) -> str:
        return self.domain.read(lambda rec: rec.password)

    def set_permanent_password(self, password: str) -> bool:
        return self.domain.mutate(lambda rec: setattr(rec, "password", str(password)))

    def get_salt(self) -> str:
        salt = self.domain.read(lambda rec: rec.salt)
        if not salt:
            salt = auto_password(6)
            self.set_salt(salt)
        return salt

    def set_salt(self, salt: str) -> bool:
        return self.domain.mutate(lambda rec: setattr(rec, "salt", str(salt)))

    def get_key_confirmed(self) -> bool:
        return self.domain.read(lambda rec: rec.key_confirmed)

    def set_key_confirmed(self, value: bool) -> bool:
        def apply(rec: Identity) -> None:
            if rec.key_confirmed == bool(value):
                return
            rec.key_confirmed = bool(value)
            if not value:
                rec.keys_confirmed = {}

        return self.domain.mutate(apply)

    def get_host_key_confirmed(self, host: str) -> bool:
        return self.domain.read(lambda rec: rec.keys_confirmed.get(host) is True)

    def set_host_key_confirmed(self, host: str, value: bool) -> bool:
        def apply(rec: Identity) -> None:
            if (rec.keys_confirmed.get(host) is True) == bool(value):
                return
            rec.keys_confirmed[host] = bool(value)

        return self.domain.mutate(apply)

#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import base64
import binascii
import logging
import os
import re
from typing import Callable, List, Tuple

from deskconf.constants import CONFIG_EXT, PEERS_DIR
from deskconf.paths import PathResolver, with_extension
from deskconf.records import PeerProfile
from deskconf.secret_codec import SecretCodec
from deskconf.storage import RecordStore


logger = logging.getLogger(__name__)

ENCODED_PREFIX = "base64_"
FORBIDDEN_CHARS_RE = re.compile(r"[<>:/\\|?*]")

PeerEntry = Tuple[str, float, PeerProfile]


def encode_peer_filename(peer_id: str) -> str:
    if FORBIDDEN_CHARS_RE.search(peer_id):
        encoded = base64.urlsafe_b64encode(peer_id.encode("utf-8")).decode("ascii")
        return ENCODED_PREFIX + encoded
    return peer_id


def decode_peer_filename(stem: str) -> str:
    if not stem.startswith(ENCODED_PREFIX) or len(stem) == len(ENCODED_PREFIX):
        return stem
    payload = stem[len(ENCODED_PREFIX):]
    try:
        # Url-safe or standard alphabet.
        raw = base64.b64decode(payload.replace("-", "+").replace("_", "/").encode("ascii"), validate=True)
        return raw.decode("utf-8")
    except (binascii.Error, UnicodeDecodeError, UnicodeEncodeError, ValueError):
        return payload


class PeerRegistry:
    """One profile file per remote host under <base>/peers.

    Secret fields (the password and two credential options) are encrypted
    at rest; a profile loaded in an older format is re-stored right away.
    """

    def __init__(self, store: RecordStore, resolver: PathResolver, codec: SecretCodec) -> None:
        self._store = store
        self._resolver = resolver
        self._codec = codec
        self._option_transforms: List[Tuple[str, Callable[[str], Tuple[str, bool, bool]], Callable[[str], str]]] = [
            ("rdp_password", codec.decrypt_str, codec.encrypt_str),
            ("os-password", codec.decrypt_str, codec.encrypt_str),
        ]

    def directory(self) -> str:
        return self._resolver.path(PEERS_DIR)

    def path_for(self, peer_id: str) -> str:
        return with_extension(os.path.join(self.directory(), encode_peer_filename(peer_id)))

    def exists(self, peer_id: str) -> bool:
        return os.path.isfile(self.path_for(peer_id))

    def _decrypt(self, profile: PeerProfile) -> bool:
        store = False
        password, _, rewrite = self._codec.decrypt_bytes(profile.password)
        profile.password = password
        store = store or rewrite
        for key, decrypt, _encrypt in self._option_transforms:
            if key in profile.options:
                value, _, rewrite = decrypt(profile.options[key])
                profile.options[key] = value
                store = store or rewrite
        return store

    def _encrypt(self, profile: PeerProfile) -> PeerProfile:
        profile.password = self._codec.encrypt_bytes(profile.password)
        for key, _decrypt, encrypt in self._option_transforms:
            if key in profile.options:
                profile.options[key] = encrypt(profile.options[key])
        return profile

    def _load_from(self, path: str) -> PeerProfile:
        profile = self._store.load(path, PeerProfile)
        if self._decrypt(profile):
            self._store_to(path, profile)
        return profile

    def _store_to(self, path: str, profile: PeerProfile) -> None:
        out = self._encrypt(PeerProfile.from_dict(profile.to_dict()))
        try:
            self._store.store(path, out)
        except Exception as e:
            logger.error("Failed to store peer config %s: %s: %s", path, type(e).__name__, e)

    def load(self, peer_id: str) -> PeerProfile:
        return self._load_from(self.path_for(peer_id))

    def store(self, peer_id: str, profile: PeerProfile) -> None:
        self._store_to(self.path_for(peer_id), profile)

    def remove(self, peer_id: str) -> None:
        try:
            self._store.remove(self.path_for(peer_id))
        except OSError as e:
            logger.error("Failed to remove peer config %s: %s", peer_id, e)

    def list_all(self) -> List[PeerEntry]:
        """All usable profiles, most recently modified first.

        Profiles without a known platform never finished a connection; their
        files are deleted here.
        """
        try:
            names = os.listdir(self.directory())
        except OSError:
            return []
        suffix = "." + CONFIG_EXT
        peers: List[PeerEntry] = []
        for name in names:
            path = os.path.join(self.directory(), name)
            if not name.endswith(suffix) or not os.path.isfile(path):
                continue
            try:
                mtime = self._store.modified_time(path) or 0.0
                peer_id = decode_peer_filename(name[: -len(suffix)])
                profile = self._load_from(path)
                if not profile.info.platform:
                    self._store.remove(path)
                    continue
                peers.append((peer_id, mtime, profile))
            except Exception as e:
                logger.warning("Skipping peer config %s: %s: %s", name, type(e).__name__, e)
                continue
        peers.sort(key=lambda p: p[1], reverse=True)
        return peers

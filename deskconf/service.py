#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import enum
from typing import Callable, Dict, Iterable, List, Optional

from deskconf import hostinfo
from deskconf.constants import MIN_WINDOW_SIDE, SERIAL
from deskconf.domains import ConfigDomain
from deskconf.identity import IdentityManager, KeyPair, auto_password
from deskconf.paths import PathResolver, make_resolver
from deskconf.peers import PeerRegistry
from deskconf.records import (
    HwCodecOptions,
    Identity,
    LanPeer,
    LanPeers,
    LocalState,
    NetworkOptions,
    Size,
    Socks5Server,
)
from deskconf.rendezvous import RendezvousSelector
from deskconf.secret_codec import SecretCodec
from deskconf.settings import Settings
from deskconf.storage import RecordStore


class NetworkType(enum.Enum):
    DIRECT = "direct"
    PROXY_SOCKS = "proxy_socks"


class ConfigService:
    """Process-scoped handle to every config domain.

    Build one per process (or per test, pointed at a temporary base_dir) and
    hand it to whatever needs configuration. All accessors are synchronous;
    disk is only touched on first load and when a value actually changes.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        store: Optional[RecordStore] = None,
        resolver: Optional[PathResolver] = None,
        key_material: Optional[Callable[[], bytes]] = None,
        id_source: Optional[Callable[[], Optional[str]]] = None,
        exe_time_source: Optional[Callable[[], float]] = None,
    ) -> None:
        self.settings = settings if settings is not None else Settings.from_env()
        self.store = store if store is not None else RecordStore()
        self.resolver = resolver if resolver is not None else make_resolver(self.settings)
        self._key_material = key_material
        self.codec = SecretCodec(self._secret_key_material)
        self.identity = IdentityManager(
            self.store,
            self.file_path(""),
            self.codec,
            self.settings,
            id_source=id_source,
            exe_time_source=exe_time_source,
        )
        self.network: ConfigDomain[NetworkOptions] = ConfigDomain(
            "network",
            self.file_path("2"),
            NetworkOptions,
            self.store,
            after_load=self._network_after_load,
            before_store=self._network_before_store,
        )
        self.local: ConfigDomain[LocalState] = ConfigDomain("local", self.file_path("_local"), LocalState, self.store)
        self.hwcodec: ConfigDomain[HwCodecOptions] = ConfigDomain(
            "hwcodec", self.file_path("_hwcodec"), HwCodecOptions, self.store
        )
        self.lan_peers: ConfigDomain[LanPeers] = ConfigDomain(
            "lan peers", self.file_path("_lan_peers"), LanPeers, self.store
        )
        self.peers = PeerRegistry(self.store, self.resolver, self.codec)
        self.rendezvous = RendezvousSelector(self.network, self.settings)

    def _secret_key_material(self) -> bytes:
        if self._key_material is not None:
            return self._key_material()
        uid = hostinfo.machine_uid()
        if uid:
            return uid.encode("utf-8")
        return self.identity.get_keypair()[1]

    def _network_after_load(self, rec: NetworkOptions) -> bool:
        if rec.socks is None:
            return False
        password, _, rewrite = self.codec.decrypt_str(rec.socks.password)
        rec.socks.password = password
        return rewrite

    def _network_before_store(self, rec: NetworkOptions) -> NetworkOptions:
        if rec.socks is not None:
            rec.socks.password = self.codec.encrypt_str(rec.socks.password)
        return rec

    def close(self, timeout: Optional[float] = 5.0) -> None:
        self.identity.join_background(timeout)

    # -- paths --------------------------------------------------------------

    def file_path(self, suffix: str = "") -> str:
        return self.resolver.file_path(suffix)

    def log_path(self) -> str:
        return self.resolver.log_path()

    def ipc_path(self, postfix: str = "") -> str:
        return self.resolver.ipc_path(postfix)

    def icon_path(self) -> str:
        return self.resolver.icon_path()

    # -- identity -----------------------------------------------------------

    def get_identity(self) -> Identity:
        return self.identity.load_identity()

    def set_identity(self, rec: Identity) -> bool:
        return self.identity.store_identity(rec)

    def is_identity_empty(self) -> bool:
        return self.identity.domain.read(lambda rec: rec.is_empty())

    def get_id(self) -> str:
        return self.identity.get_id()

    def get_id_or(self, default: str) -> str:
        return self.identity.get_id_or(default)

    def set_id(self, new_id: str) -> bool:
        return self.identity.set_id(new_id)

    def update_id(self) -> str:
        return self.identity.update_id()

    def get_permanent_password(self) -> str:
        return self.identity.get_permanent_password()

    def set_permanent_password(self, password: str) -> bool:
        return self.identity.set_permanent_password(password)

    def get_salt(self) -> str:
        return self.identity.get_salt()

    def set_salt(self, salt: str) -> bool:
        return self.identity.set_salt(salt)

    def get_key_confirmed(self) -> bool:
        return self.identity.get_key_confirmed()

    def set_key_confirmed(self, value: bool) -> bool:
        return self.identity.set_key_confirmed(value)

    def get_host_key_confirmed(self, host: str) -> bool:
        return self.identity.get_host_key_confirmed(host)

    def set_host_key_confirmed(self, host: str, value: bool) -> bool:
        return self.identity.set_host_key_confirmed(host, value)

    def get_keypair(self) -> KeyPair:
        return self.identity.get_keypair()

    @staticmethod
    def get_auto_password(length: int) -> str:
        return auto_password(length)

    # -- network / runtime options -------------------------------------------

    def get_network(self) -> NetworkOptions:
        return self.network.get()

    def set_network(self, rec: NetworkOptions) -> bool:
        return self.network.set(rec)

    def get_options(self) -> Dict[str, str]:
        return self.network.read(lambda rec: dict(rec.options))

    def set_options(self, options: Dict[str, str]) -> bool:
        new = {str(k): str(v) for k, v in options.items()}
        return self.network.mutate(lambda rec: setattr(rec, "options", new))

    def get_option(self, key: str) -> str:
        return self.network.get_option(key)

    def set_option(self, key: str, value: str) -> bool:
        return self.network.set_option(key, value)

    def get_nat_type(self) -> int:
        return self.network.read(lambda rec: rec.nat_type)

    def set_nat_type(self, nat_type: int) -> bool:
        return self.network.mutate(lambda rec: setattr(rec, "nat_type", int(nat_type)))

    def get_serial(self) -> int:
        return max(self.network.read(lambda rec: rec.serial), SERIAL)

    def set_serial(self, serial: int) -> bool:
        return self.network.mutate(lambda rec: setattr(rec, "serial", int(serial)))

    def get_socks(self) -> Optional[Socks5Server]:
        return self.network.get().socks

    def set_socks(self, socks: Optional[Socks5Server]) -> bool:
        return self.network.mutate(lambda rec: setattr(rec, "socks", socks))

    def get_network_type(self) -> NetworkType:
        has_socks = self.network.read(lambda rec: rec.socks is not None)
        return NetworkType.PROXY_SOCKS if has_socks else NetworkType.DIRECT

    # -- rendezvous -----------------------------------------------------------

    def get_rendezvous_server(self) -> str:
        return self.rendezvous.get_rendezvous_server()

    def get_rendezvous_servers(self) -> List[str]:
        return self.rendezvous.get_rendezvous_servers()

    def update_latency(self, host: str, latency_ms: int) -> bool:
        return self.rendezvous.update_latency(host, latency_ms)

    def reset_online(self) -> None:
        self.rendezvous.reset_online()

    # -- local state ----------------------------------------------------------

    def get_size(self) -> Size:
        return self.local.read(lambda rec: rec.size)

    def set_size(self, x: int, y: int, w: int, h: int) -> bool:
        if w < MIN_WINDOW_SIDE or h < MIN_WINDOW_SIDE:
            return False
        size = (int(x), int(y), int(w), int(h))
        return self.local.mutate(lambda rec: setattr(rec, "size", size))

    def get_remote_id(self) -> str:
        return self.local.read(lambda rec: rec.remote_id)

    def set_remote_id(self, remote_id: str) -> bool:
        return self.local.mutate(lambda rec: setattr(rec, "remote_id", str(remote_id)))

    def get_fav(self) -> List[str]:
        return self.local.read(lambda rec: list(rec.fav))

    def set_fav(self, fav: Iterable[str]) -> bool:
        new = [str(f) for f in fav]
        return self.local.mutate(lambda rec: setattr(rec, "fav", new))

    def get_local_option(self, key: str) -> str:
        return self.local.get_option(key)

    def set_local_option(self, key: str, value: str) -> bool:
        return self.local.set_option(key, value)

    def get_flutter_config(self, key: str) -> str:
        return self.local.get_option(key, attr="ui_flutter")

    def set_flutter_config(self, key: str, value: str) -> bool:
        return self.local.set_option(key, value, attr="ui_flutter")

    # -- hardware codec -------------------------------------------------------

    def get_hwcodec(self) -> HwCodecOptions:
        return self.hwcodec.get()

    def store_hwcodec(self, rec: HwCodecOptions) -> bool:
        return self.hwcodec.set(rec)

    def remove_hwcodec(self) -> bool:
        return self.hwcodec.remove_file()

    def refresh_hwcodec(self) -> None:
        self.hwcodec.refresh()

    # -- LAN discovery cache ----------------------------------------------------

    def load_lan_peers(self) -> List[LanPeer]:
        # Discovery may run in another process; always re-read.
        self.lan_peers.refresh()
        return self.lan_peers.get().peers

    def store_lan_peers(self, peers: Iterable[LanPeer]) -> bool:
        return self.lan_peers.set(LanPeers(peers=list(peers)))

    def merge_lan_peers(self, discovered: Iterable[LanPeer]) -> bool:
        found = list(discovered)
        self.lan_peers.refresh()
        return self.lan_peers.mutate(lambda rec: setattr(rec, "peers", rec.merged(found).peers))

    def lan_peers_modified_time(self) -> Optional[int]:
        ts = self.store.modified_time(self.lan_peers.path)
        return int(ts * 1000) if ts is not None else None

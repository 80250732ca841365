#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import sys
import threading
from typing import Dict, List

from deskconf.constants import (
    OPTION_CUSTOM_RENDEZVOUS,
    OPTION_RENDEZVOUS_SERVERS,
    RENDEZVOUS_PORT,
    SERIAL,
)
from deskconf.domains import ConfigDomain, get_option
from deskconf.records import NetworkOptions
from deskconf.settings import Settings


logger = logging.getLogger(__name__)


class RendezvousSelector:
    """Pick the signaling server address and follow the fastest one.

    A user override always wins; the persisted rendezvous_server is only the
    fallback, and update_latency() rewrites it to whichever host currently
    has the lowest positive latency.
    """

    def __init__(self, network: ConfigDomain[NetworkOptions], settings: Settings) -> None:
        self._network = network
        self._settings = settings
        self._online: Dict[str, int] = {}
        self._online_lock = threading.Lock()

    def _override(self) -> str:
        custom = self._network.get_option(OPTION_CUSTOM_RENDEZVOUS)
        if custom:
            return custom
        return self._settings.prod_rendezvous_server or ""

    def get_rendezvous_server(self) -> str:
        server = self._override()
        if not server:
            server = self._network.read(lambda rec: rec.rendezvous_server)
        if not server:
            servers = self.get_rendezvous_servers()
            server = servers[0] if servers else ""
        if ":" not in server:
            server = f"{server}:{RENDEZVOUS_PORT}"
        return server

    def get_rendezvous_servers(self) -> List[str]:
        override = self._override()
        if override:
            return [override]
        serial, custom_list = self._network.read(
            lambda rec: (rec.serial, get_option(rec.options, OPTION_RENDEZVOUS_SERVERS))
        )
        if serial > SERIAL:
            servers = [s for s in custom_list.split(",") if "." in s]
            if servers:
                return servers
        return list(self._settings.rendezvous_servers)

    def reset_online(self) -> None:
        with self._online_lock:
            self._online = {}

    def online(self) -> Dict[str, int]:
        with self._online_lock:
            return dict(self._online)

    def update_latency(self, host: str, latency_ms: int) -> bool:
        """Record a latency sample; returns True if the persisted server changed."""
        with self._online_lock:
            self._online[host] = int(latency_ms)
            best_host = ""
            best = sys.maxsize
            for tmp_host, tmp_delay in self._online.items():
                if 0 < tmp_delay < best:
                    best = tmp_delay
                    best_host = tmp_host
            snapshot = dict(self._online)
        if not best_host:
            return False

        def apply(rec: NetworkOptions) -> None:
            rec.rendezvous_server = best_host

        changed = self._network.mutate(apply)
        if changed:
            logger.info("Update rendezvous_server in config to %s", best_host)
            logger.debug("Latency table: %s", snapshot)
        return changed

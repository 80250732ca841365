#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations


VERSION = "1.0.0"

# Server list generation shipped with this build. A persisted serial above
# this means the client has seen a newer list than it was compiled with.
SERIAL = 3

PASSWORD_ENC_VERSION = "00"

RENDEZVOUS_SERVERS = ("rs-ny.deskline.net",)
RENDEZVOUS_PORT = 21116

# Excludes 0, 1, l and o.
PASSWORD_CHARS = "23456789abcdefghijkmnpqrstuvwxyz"

ID_RETRIES = 3
ID_RANDOM_MIN = 1_000_000_000
ID_RANDOM_MAX = 2_000_000_000
ID_MAC_MASK = 0x1FFFFFFF

CONFIG_EXT = "json"
PEERS_DIR = "peers"

MIN_WINDOW_SIDE = 300

OPTION_CUSTOM_RENDEZVOUS = "custom-rendezvous-server"
OPTION_RENDEZVOUS_SERVERS = "rendezvous-servers"

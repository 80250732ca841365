#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

from deskconf.constants import RENDEZVOUS_SERVERS


ENV_PREFIX = "DESKCONF_"


def _is_mobile_platform() -> bool:
    return sys.platform in ("android", "ios") or hasattr(sys, "getandroidapilevel")


def _env_bool(value: Optional[str]) -> bool:
    return str(value or "").strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Runtime knobs for one ConfigService.

    base_dir overrides the platform config directory (tests, portable
    installs). id_grace_seconds is how far a config file's mtime may trail
    the executable build time and still have its plaintext id trusted.
    """

    app_name: str = "Deskline"
    org: str = "com.deskline"
    base_dir: Optional[str] = None
    prod_rendezvous_server: str = ""
    rendezvous_servers: Tuple[str, ...] = RENDEZVOUS_SERVERS
    id_grace_seconds: float = 30.0
    random_id: bool = field(default_factory=_is_mobile_platform)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "Settings":
        env = os.environ if environ is None else environ
        st = cls()
        app_name = env.get(ENV_PREFIX + "APP_NAME")
        if app_name:
            st.app_name = app_name
        org = env.get(ENV_PREFIX + "ORG")
        if org:
            st.org = org
        home = env.get(ENV_PREFIX + "HOME")
        if home:
            st.base_dir = home
        prod = env.get(ENV_PREFIX + "RENDEZVOUS_SERVER")
        if prod:
            st.prod_rendezvous_server = prod.strip()
        servers = env.get(ENV_PREFIX + "RENDEZVOUS_SERVERS")
        if servers:
            parsed = tuple(s.strip() for s in servers.split(",") if s.strip())
            if parsed:
                st.rendezvous_servers = parsed
        grace = env.get(ENV_PREFIX + "ID_GRACE_SECONDS")
        if grace:
            try:
                st.id_grace_seconds = max(0.0, float(grace))
            except ValueError:
                pass
        if ENV_PREFIX + "RANDOM_ID" in env:
            st.random_id = _env_bool(env.get(ENV_PREFIX + "RANDOM_ID"))
        for key, value in overrides.items():
            if value is not None:
                setattr(st, key, value)
        return st

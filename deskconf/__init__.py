#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
deskconf package

Persistent configuration for the Deskline remote desktop client: device
identity and secrets, per-peer connection profiles, local UI state and
runtime options. ConfigService is the process-scoped entry point; the other
modules are split out so they can be tested in isolation.
"""

from __future__ import annotations

from deskconf.service import ConfigService, NetworkType
from deskconf.settings import Settings

__all__ = ["ConfigService", "NetworkType", "Settings"]

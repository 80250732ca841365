#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import os
import sys
import tempfile
from typing import Optional

import appdirs

from deskconf import hostinfo
from deskconf.constants import CONFIG_EXT
from deskconf.settings import Settings


logger = logging.getLogger(__name__)


def with_extension(path: str) -> str:
    """Force the config extension, keeping any existing one in front of it.

    "Deskline" -> "Deskline.json", "peer.example" -> "peer.example.json".
    """
    return path + "." + CONFIG_EXT


class PathResolver:
    """Base directory and file naming for one application name.

    Platform subclasses only differ in resolve_base_dir() and patch(); pick
    one with make_resolver().
    """

    def __init__(self, app_name: str, org: str = "") -> None:
        self.app_name = app_name
        self.org = org
        self._base_dir: Optional[str] = None

    def patch(self, path: str) -> str:
        return path

    def resolve_base_dir(self) -> str:
        raise NotImplementedError

    def base_dir(self) -> str:
        if self._base_dir is None:
            self._base_dir = self.resolve_base_dir()
            logger.debug("Configuration path: %s", self._base_dir)
        return self._base_dir

    def home(self) -> str:
        home = os.path.expanduser("~")
        if home and home != "~":
            return self.patch(home)
        try:
            return os.getcwd()
        except OSError:
            return tempfile.gettempdir()

    def path(self, *parts: str) -> str:
        return os.path.join(self.base_dir(), *parts)

    def file_path(self, suffix: str = "") -> str:
        return with_extension(self.path(f"{self.app_name}{suffix}"))

    def log_path(self) -> str:
        parent = os.path.dirname(self.base_dir().rstrip(os.sep)) or self.base_dir()
        return os.path.join(parent, "log")

    def ipc_path(self, postfix: str = "") -> str:
        ipc_dir = os.path.join(tempfile.gettempdir(), self.app_name)
        try:
            os.makedirs(ipc_dir, exist_ok=True)
            os.chmod(ipc_dir, 0o777)
        except OSError:
            pass
        return os.path.join(ipc_dir, f"ipc{postfix}")

    def icon_path(self) -> str:
        path = self.path("icons")
        try:
            os.makedirs(path, exist_ok=True)
        except OSError:
            return tempfile.gettempdir()
        return path


class FixedPathResolver(PathResolver):
    """Explicit base directory (tests, portable installs)."""

    def __init__(self, base_dir: str, app_name: str, org: str = "") -> None:
        super().__init__(app_name, org)
        self._fixed = os.path.abspath(os.path.expanduser(base_dir))

    def resolve_base_dir(self) -> str:
        return self._fixed


class WindowsPathResolver(PathResolver):
    def patch(self, path: str) -> str:
        # Services run as LocalSystem; share the LocalService profile instead.
        return path.replace("system32\\config\\systemprofile", "ServiceProfiles\\LocalService")

    def resolve_base_dir(self) -> str:
        roaming = appdirs.user_config_dir(self.app_name, False, roaming=True)
        return self.patch(os.path.join(roaming, "config"))

    def ipc_path(self, postfix: str = "") -> str:
        return f"\\\\.\\pipe\\{self.app_name}\\query{postfix}"


class MacPathResolver(PathResolver):
    def patch(self, path: str) -> str:
        return path.replace("Application Support", "Preferences")

    def resolve_base_dir(self) -> str:
        name = f"{self.org}.{self.app_name}" if self.org else self.app_name
        return self.patch(appdirs.user_config_dir(name))

    def log_path(self) -> str:
        return os.path.join(self.home(), "Library", "Logs", self.app_name)


class LinuxPathResolver(PathResolver):
    def patch(self, path: str) -> str:
        if path == "/root":
            user = hostinfo.current_user()
            if user and user != "root":
                return f"/home/{user}"
        return path

    def resolve_base_dir(self) -> str:
        name = self.app_name.lower().replace(" ", "")
        return self.patch(appdirs.user_config_dir(name))

    def log_path(self) -> str:
        path = os.path.join(self.home(), ".local", "share", "logs", self.app_name)
        try:
            os.makedirs(path, exist_ok=True)
        except OSError:
            pass
        return path


def make_resolver(settings: Settings) -> PathResolver:
    if settings.base_dir:
        return FixedPathResolver(settings.base_dir, settings.app_name, settings.org)
    if sys.platform.startswith("win"):
        return WindowsPathResolver(settings.app_name, settings.org)
    if sys.platform == "darwin":
        return MacPathResolver(settings.app_name, settings.org)
    return LinuxPathResolver(settings.app_name, settings.org)

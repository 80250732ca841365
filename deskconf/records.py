#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""Typed config records and their JSON-friendly dict forms.

from_dict() never raises on bad input: missing or mistyped fields fall back
to the field default and unknown keys are ignored, so files written by older
or newer builds still load.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


Size = Tuple[int, int, int, int]
PortForward = Tuple[int, str, int]

DEFAULT_VIEW_STYLE = "original"
DEFAULT_SCROLL_STYLE = "scrollauto"
DEFAULT_IMAGE_QUALITY = "balanced"
DEFAULT_CODEC_PREFERENCE = "auto"


def _str(value: Any, default: str = "") -> str:
    return value if isinstance(value, str) else default


def _int(value: Any, default: int = 0) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _bool(value: Any, default: bool = False) -> bool:
    return value if isinstance(value, bool) else default


def _str_map(value: Any) -> Dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items() if v is not None}


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None]


def _bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    if isinstance(value, list):
        try:
            return bytes(int(v) & 0xFF for v in value)
        except (TypeError, ValueError):
            return b""
    if isinstance(value, str) and value:
        try:
            return base64.b64decode(value.encode("ascii"), validate=True)
        except (binascii.Error, UnicodeEncodeError, ValueError):
            return b""
    return b""


def _b64(value: bytes) -> str:
    return base64.b64encode(bytes(value or b"")).decode("ascii")


def _size(value: Any) -> Size:
    if isinstance(value, (list, tuple)) and len(value) == 4:
        return (_int(value[0]), _int(value[1]), _int(value[2]), _int(value[3]))
    return (0, 0, 0, 0)


def _styled(value: Any, default: str) -> str:
    text = _str(value)
    return text if text else default


@dataclass
class Identity:
    id: str = ""
    enc_id: str = ""
    password: str = ""
    salt: str = ""
    key_pair: Tuple[bytes, bytes] = (b"", b"")
    key_confirmed: bool = False
    keys_confirmed: Dict[str, bool] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return (not self.id and not self.enc_id) or not self.key_pair[0]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Identity":
        kp = data.get("key_pair")
        if isinstance(kp, (list, tuple)) and len(kp) == 2:
            key_pair = (_bytes(kp[0]), _bytes(kp[1]))
        else:
            key_pair = (b"", b"")
        confirmed = data.get("keys_confirmed")
        keys_confirmed: Dict[str, bool] = {}
        if isinstance(confirmed, dict):
            keys_confirmed = {str(k): bool(v) for k, v in confirmed.items()}
        return cls(
            id=_str(data.get("id")),
            enc_id=_str(data.get("enc_id")),
            password=_str(data.get("password")),
            salt=_str(data.get("salt")),
            key_pair=key_pair,
            key_confirmed=_bool(data.get("key_confirmed")),
            keys_confirmed=keys_confirmed,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "enc_id": self.enc_id,
            "password": self.password,
            "salt": self.salt,
            "key_pair": [_b64(self.key_pair[0]), _b64(self.key_pair[1])],
            "key_confirmed": self.key_confirmed,
            "keys_confirmed": dict(self.keys_confirmed),
        }


@dataclass
class Socks5Server:
    proxy: str = ""
    username: str = ""
    password: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Socks5Server":
        return cls(
            proxy=_str(data.get("proxy")),
            username=_str(data.get("username")),
            password=_str(data.get("password")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"proxy": self.proxy, "username": self.username, "password": self.password}


@dataclass
class NetworkOptions:
    rendezvous_server: str = ""
    nat_type: int = 0
    serial: int = 0
    socks: Optional[Socks5Server] = None
    options: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NetworkOptions":
        socks_raw = data.get("socks")
        return cls(
            rendezvous_server=_str(data.get("rendezvous_server")),
            nat_type=_int(data.get("nat_type")),
            serial=_int(data.get("serial")),
            socks=Socks5Server.from_dict(socks_raw) if isinstance(socks_raw, dict) else None,
            options=_str_map(data.get("options")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rendezvous_server": self.rendezvous_server,
            "nat_type": self.nat_type,
            "serial": self.serial,
            "socks": self.socks.to_dict() if self.socks is not None else None,
            "options": dict(self.options),
        }


@dataclass
class PeerInfo:
    username: str = ""
    hostname: str = ""
    platform: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PeerInfo":
        return cls(
            username=_str(data.get("username")),
            hostname=_str(data.get("hostname")),
            platform=_str(data.get("platform")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"username": self.username, "hostname": self.hostname, "platform": self.platform}


@dataclass
class TransferJobs:
    write_jobs: List[str] = field(default_factory=list)
    read_jobs: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TransferJobs":
        return cls(write_jobs=_str_list(data.get("write_jobs")), read_jobs=_str_list(data.get("read_jobs")))

    def to_dict(self) -> Dict[str, Any]:
        return {"write_jobs": list(self.write_jobs), "read_jobs": list(self.read_jobs)}


@dataclass
class PeerProfile:
    password: bytes = b""
    size: Size = (0, 0, 0, 0)
    size_ft: Size = (0, 0, 0, 0)
    size_pf: Size = (0, 0, 0, 0)
    view_style: str = DEFAULT_VIEW_STYLE
    scroll_style: str = DEFAULT_SCROLL_STYLE
    image_quality: str = DEFAULT_IMAGE_QUALITY
    custom_image_quality: List[int] = field(default_factory=list)
    show_remote_cursor: bool = False
    lock_after_session_end: bool = False
    privacy_mode: bool = False
    port_forwards: List[PortForward] = field(default_factory=list)
    direct_failures: int = 0
    disable_audio: bool = False
    disable_clipboard: bool = False
    enable_file_transfer: bool = False
    show_quality_monitor: bool = False
    keyboard_mode: str = ""
    options: Dict[str, str] = field(default_factory=dict)
    ui_flutter: Dict[str, str] = field(default_factory=dict)
    info: PeerInfo = field(default_factory=PeerInfo)
    transfer: TransferJobs = field(default_factory=TransferJobs)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PeerProfile":
        forwards: List[PortForward] = []
        raw_forwards = data.get("port_forwards")
        if isinstance(raw_forwards, list):
            for item in raw_forwards:
                if isinstance(item, (list, tuple)) and len(item) == 3:
                    forwards.append((_int(item[0]), _str(item[1]), _int(item[2])))
        quality = data.get("custom_image_quality")
        options = _str_map(data.get("options"))
        options.setdefault("codec-preference", DEFAULT_CODEC_PREFERENCE)
        info_raw = data.get("info")
        transfer_raw = data.get("transfer")
        return cls(
            password=_bytes(data.get("password")),
            size=_size(data.get("size")),
            size_ft=_size(data.get("size_ft")),
            size_pf=_size(data.get("size_pf")),
            view_style=_styled(data.get("view_style"), DEFAULT_VIEW_STYLE),
            scroll_style=_styled(data.get("scroll_style"), DEFAULT_SCROLL_STYLE),
            image_quality=_styled(data.get("image_quality"), DEFAULT_IMAGE_QUALITY),
            custom_image_quality=[_int(v) for v in quality] if isinstance(quality, list) else [],
            show_remote_cursor=_bool(data.get("show_remote_cursor")),
            lock_after_session_end=_bool(data.get("lock_after_session_end")),
            privacy_mode=_bool(data.get("privacy_mode")),
            port_forwards=forwards,
            direct_failures=_int(data.get("direct_failures")),
            disable_audio=_bool(data.get("disable_audio")),
            disable_clipboard=_bool(data.get("disable_clipboard")),
            enable_file_transfer=_bool(data.get("enable_file_transfer")),
            show_quality_monitor=_bool(data.get("show_quality_monitor")),
            keyboard_mode=_str(data.get("keyboard_mode")),
            options=options,
            ui_flutter=_str_map(data.get("ui_flutter")),
            info=PeerInfo.from_dict(info_raw) if isinstance(info_raw, dict) else PeerInfo(),
            transfer=TransferJobs.from_dict(transfer_raw) if isinstance(transfer_raw, dict) else TransferJobs(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "password": _b64(self.password),
            "size": list(self.size),
            "size_ft": list(self.size_ft),
            "size_pf": list(self.size_pf),
            "view_style": self.view_style,
            "scroll_style": self.scroll_style,
            "image_quality": self.image_quality,
            "custom_image_quality": list(self.custom_image_quality),
            "show_remote_cursor": self.show_remote_cursor,
            "lock_after_session_end": self.lock_after_session_end,
            "privacy_mode": self.privacy_mode,
            "port_forwards": [list(pf) for pf in self.port_forwards],
            "direct_failures": self.direct_failures,
            "disable_audio": self.disable_audio,
            "disable_clipboard": self.disable_clipboard,
            "enable_file_transfer": self.enable_file_transfer,
            "show_quality_monitor": self.show_quality_monitor,
            "keyboard_mode": self.keyboard_mode,
            "options": dict(self.options),
            "ui_flutter": dict(self.ui_flutter),
            "info": self.info.to_dict(),
            "transfer": self.transfer.to_dict(),
        }


@dataclass
class LocalState:
    remote_id: str = ""
    size: Size = (0, 0, 0, 0)
    fav: List[str] = field(default_factory=list)
    options: Dict[str, str] = field(default_factory=dict)
    ui_flutter: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LocalState":
        return cls(
            remote_id=_str(data.get("remote_id")),
            size=_size(data.get("size")),
            fav=_str_list(data.get("fav")),
            options=_str_map(data.get("options")),
            ui_flutter=_str_map(data.get("ui_flutter")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "remote_id": self.remote_id,
            "size": list(self.size),
            "fav": list(self.fav),
            "options": dict(self.options),
            "ui_flutter": dict(self.ui_flutter),
        }


@dataclass
class LanPeer:
    id: str = ""
    username: str = ""
    hostname: str = ""
    platform: str = ""
    online: bool = False
    ip_mac: Dict[str, str] = field(default_factory=dict)

    def is_same_peer(self, other: "LanPeer") -> bool:
        return self.id == other.id and self.username == other.username

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LanPeer":
        return cls(
            id=_str(data.get("id")),
            username=_str(data.get("username")),
            hostname=_str(data.get("hostname")),
            platform=_str(data.get("platform")),
            online=_bool(data.get("online")),
            ip_mac=_str_map(data.get("ip_mac")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "hostname": self.hostname,
            "platform": self.platform,
            "online": self.online,
            "ip_mac": dict(self.ip_mac),
        }


@dataclass
class LanPeers:
    peers: List[LanPeer] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LanPeers":
        raw = data.get("peers")
        peers = [LanPeer.from_dict(p) for p in raw if isinstance(p, dict)] if isinstance(raw, list) else []
        return cls(peers=peers)

    def to_dict(self) -> Dict[str, Any]:
        return {"peers": [p.to_dict() for p in self.peers]}

    def merged(self, discovered: List[LanPeer]) -> "LanPeers":
        """Return a copy with discovered peers replacing same-peer entries."""
        out = [p for p in self.peers if not any(p.is_same_peer(d) for d in discovered)]
        out.extend(discovered)
        return LanPeers(peers=out)


@dataclass
class HwCodecOptions:
    options: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HwCodecOptions":
        return cls(options=_str_map(data.get("options")))

    def to_dict(self) -> Dict[str, Any]:
        return {"options": dict(self.options)}

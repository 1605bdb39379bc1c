# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""LoginLog record."""

from __future__ import annotations

from ...data import DateTime, Fields, Integer, IpAddress, PassiveRecord, String, Timestamp


class LoginLog(PassiveRecord):
    """Login audit trail: who logged in, from where, with which agent."""

    table = "LoginLog"
    pkey = "loginlog_id"
    keys = ["login_id"]

    @classmethod
    def configure(cls, f: Fields) -> None:
        f.field("loginlog_id", Integer, min=1, guard=True)
        f.field("created_uts", Timestamp, min=0, guard=True)
        f.field("updated_dts", DateTime, guard=True)
        f.field("login_id", Integer, min=0)
        f.field("ip", IpAddress, ddl="`ip` int(10) unsigned NOT NULL DEFAULT 0")
        f.field("ua", String, max=255)
        f.field("login_uts", Timestamp, min=0, ddl="`login_uts` int(10) unsigned NOT NULL DEFAULT 0")

    def before_insert(self) -> None:
        super().before_insert()
        if not self.get("login_uts"):
            self.set("login_uts", "now")

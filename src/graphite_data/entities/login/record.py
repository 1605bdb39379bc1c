# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Login record.

Accounts carry their role labels: the select query joins the
Roles_Logins joiner table and aggregates role labels with GROUP_CONCAT,
and post_load() turns them into the ``roles`` list.
"""

from __future__ import annotations

import re
import string
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from ...data import Boolean, DateTime, Email, Fields, Integer, IpAddress, PassiveRecord, String, Timestamp
from ..role import Role

if TYPE_CHECKING:
    from ...data.connection import Connection


class Login(PassiveRecord):
    """User account.

    Schema: login_id (PK), audit stamps, activity stamps, loginname,
    password, profile fields, lastIP, referrer_id, flags.
    """

    table = "Login"
    pkey = "login_id"
    joiners = {"Role": "Roles_Logins"}
    ukeys = ["loginname"]

    LOGINNAME_RE = re.compile(r"^\w[\w\-@.\d]+$")

    # Changes to these fields do not count as an edit
    META_FIELDS = frozenset(
        {"login_uts", "logout_uts", "active_uts", "edited_uts", "created_uts", "updated_dts", "lastIP"}
    )

    @classmethod
    def configure(cls, f: Fields) -> None:
        """Define login fields."""
        f.field("login_id", Integer, min=1, guard=True)
        f.field("created_uts", Timestamp, min=0, guard=True)
        f.field("updated_dts", DateTime, guard=True)
        f.field("edited_uts", Timestamp, min=0, guard=True)
        f.field("active_uts", Timestamp, min=0)
        f.field("login_uts", Timestamp, min=0)
        f.field("logout_uts", Timestamp, min=0)
        f.field("loginname", String, strict=True, min=3, max=255)
        f.field("password", String, strict=True, min=3, max=255)
        f.field("realname", String, max=255)
        f.field("email", Email, max=255)
        f.field("comment", String, max=255)
        f.field("UA", String, min=40, max=40)
        f.field("lastIP", IpAddress)
        f.field("referrer_id", Integer, strict=True, default=0, min=1)
        f.field("disabled", Boolean, default=False)
        f.field("flagChangePass", Boolean, default=True)

    def __init__(self, values: Mapping[str, Any] | None = None, **kwargs: Any) -> None:
        super().__init__(values, **kwargs)
        self.roles: list[str] = []
        if values and values.get("roles"):
            self.roles = str(values["roles"]).split(",")

    @classmethod
    def select_sql(cls, prefix: str = "") -> str:
        columns = ", ".join(f"t.`{name}`" for name in cls.get_fields())
        return (
            f"SELECT {columns}, GROUP_CONCAT(r.`label`) AS `roles`"
            f"\nFROM `{cls.table_name(prefix)}` t"
            f"\n    LEFT JOIN `{cls.get_table('Role', prefix)}` rl ON t.`login_id` = rl.`login_id`"
            f"\n    LEFT JOIN `{Role.table_name(prefix)}` r ON r.`role_id` = rl.`role_id`"
        )

    def post_load(self, extra: dict[str, Any]) -> dict[str, Any]:
        roles = extra.pop("roles", None)
        self.roles = str(roles).split(",") if roles else []
        return extra

    def set(self, name: str, value: Any) -> bool:
        if name == "loginname" and not (isinstance(value, str) and self.LOGINNAME_RE.match(value)):
            return False
        return super().set(name, value)

    def role_test(self, role: str) -> bool:
        """True when the login holds the role label."""
        return role in self.roles

    def before_insert(self) -> None:
        self.set("created_uts", "now")
        if (self.get("referrer_id") or 0) < 1:
            self.set("referrer_id", self.current_actor_id())

    def before_update(self) -> None:
        if any(name not in self.META_FIELDS for name in self.get_diff()):
            self.set("edited_uts", "now")

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    @classmethod
    def initials(cls, conn: Connection) -> dict[str, int]:
        """Login count per initial letter, A-Z always present."""
        letters = dict.fromkeys(string.ascii_uppercase, 0)
        result = conn.execute(
            "SELECT UPPER(LEFT(`loginname`, 1)) AS `initial`, COUNT(`loginname`) AS `count`"
            f"\nFROM `{cls.table_name(conn.table_prefix)}`"
            "\nGROUP BY UPPER(LEFT(`loginname`, 1))"
        )
        for row in result.rows if result else []:
            letters[row["initial"]] = int(row["count"])
        return letters

    @classmethod
    def search_email(cls, conn: Connection, email: str) -> dict[Any, dict[str, Any]] | bool:
        """login_id and loginname of the logins using an email address."""
        if not email or not email.strip():
            return False
        return conn.execute_to_map(
            "SELECT `login_id`, `loginname`"
            f"\nFROM `{cls.table_name(conn.table_prefix)}`"
            f"\nWHERE `email` = '{conn.escape(email.strip())}'"
            "\nORDER BY `login_id`",
            cls.pkey,
        )

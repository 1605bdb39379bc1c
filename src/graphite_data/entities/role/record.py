# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Role record and its Roles_Logins membership table."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ...data import Boolean, DateTime, Fields, Integer, PassiveRecord, String, Timestamp
from ...data.fields import is_numeric

if TYPE_CHECKING:
    from ...data.connection import Connection


class Role(PassiveRecord):
    """Named permission group.

    Schema: role_id (PK), created_uts, updated_dts, creator_id, label,
    description, disabled. Membership rows live in the Roles_Logins joiner
    table (role_id, login_id, grantor_id, created_uts).
    """

    table = "Role"
    pkey = "role_id"
    joiners = {"Login": "Roles_Logins"}
    ukeys = ["label"]

    @classmethod
    def configure(cls, f: Fields) -> None:
        """Define role fields."""
        f.field("role_id", Integer, min=1, guard=True)
        f.field("created_uts", Timestamp, min=0, guard=True)
        f.field("updated_dts", DateTime, guard=True)
        f.field("creator_id", Integer, strict=True, default=0, min=1)
        f.field("label", String, strict=True, min=3, max=255)
        f.field("description", String, strict=True, min=3, max=255)
        f.field("disabled", Boolean, default=False)

    @classmethod
    def membership_table_sql(cls, prefix: str = "") -> str:
        """CREATE TABLE statement for the Roles_Logins joiner table."""
        return (
            f"CREATE TABLE IF NOT EXISTS `{cls.get_table('Login', prefix)}` (\n"
            "  `role_id` int(10) unsigned NOT NULL,\n"
            "  `login_id` int(10) unsigned NOT NULL,\n"
            "  `grantor_id` int(10) unsigned NOT NULL DEFAULT 0,\n"
            "  `created_uts` int(10) unsigned NOT NULL DEFAULT 0,\n"
            "  KEY (`login_id`),\n"
            "  PRIMARY KEY(`role_id`, `login_id`)\n"
            ")"
        )

    def before_insert(self) -> None:
        self.set("created_uts", "now")
        if (self.get("creator_id") or 0) < 1:
            self.set("creator_id", self.current_actor_id())

    def before_update(self) -> None:
        self.set("updated_dts", "now")

    # -------------------------------------------------------------------------
    # Membership
    # -------------------------------------------------------------------------

    def members(self, conn: Connection, detail: str = "grantor_id") -> dict[Any, Any] | bool:
        """Members of the role.

        Args:
            conn: Connection to query.
            detail: "grantor_id" maps login_id to grantor_id, "loginname"
                maps login_id to loginname (ordered by name).

        Returns:
            The mapping, or False on failure.
        """
        role_id = int(self.get("role_id") or 0)
        joiner = self.get_table("Login", conn.table_prefix)
        if detail == "loginname":
            from ..login import Login

            sql = (
                "SELECT l.`login_id`, l.`loginname`"
                f"\nFROM `{Login.table_name(conn.table_prefix)}` l, `{joiner}` rl"
                f"\nWHERE l.`login_id` = rl.`login_id` AND rl.`role_id` = {role_id}"
                "\nORDER BY l.`loginname`"
            )
        else:
            sql = f"SELECT rl.`login_id`, rl.`grantor_id`\nFROM `{joiner}` rl\nWHERE rl.`role_id` = {role_id}"

        result = conn.execute(sql)
        if not result:
            return False
        column = "loginname" if detail == "loginname" else "grantor_id"
        return {row["login_id"]: row[column] for row in result.rows}

    def grant(self, conn: Connection, login_id: Any) -> bool:
        """Add a login to the role, recording the current actor as grantor."""
        if not is_numeric(login_id) or self.pkey_value is None:
            return False
        sql = (
            f"INSERT INTO `{self.get_table('Login', conn.table_prefix)}`"
            " (`role_id`, `login_id`, `grantor_id`, `created_uts`)"
            f"\nVALUES ({int(self.pkey_value)}, {int(float(login_id))}, {self.current_actor_id()},"
            f" {self.fields['created_uts'].coerce('now')})"
        )
        return bool(conn.execute(sql))

    def revoke(self, conn: Connection, login_id: Any) -> bool:
        """Remove a login from the role."""
        if not is_numeric(login_id) or self.pkey_value is None:
            return False
        sql = (
            f"DELETE FROM `{self.get_table('Login', conn.table_prefix)}`"
            f"\nWHERE `role_id` = {int(self.pkey_value)} AND `login_id` = {int(float(login_id))}"
        )
        return bool(conn.execute(sql))

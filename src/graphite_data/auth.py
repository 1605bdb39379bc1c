# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Authentication context consumed by record hooks.

Records never look up the session themselves: the Database hands them an
AuthContext, and hooks read ``login_id`` from it to stamp creator and
referrer fields. Without an authenticated actor the id is 0.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@runtime_checkable
class AuthContext(Protocol):
    """Anything exposing the id of the authenticated login."""

    @property
    def login_id(self) -> int: ...


@dataclass(frozen=True)
class StaticAuth:
    """Fixed actor, for scripts, workers and tests."""

    login_id: int = 0
    loginname: str = ""


class Anonymous:
    """No authenticated actor."""

    login_id = 0

    def __repr__(self) -> str:
        return "ANONYMOUS"


ANONYMOUS = Anonymous()

__all__ = ["ANONYMOUS", "Anonymous", "AuthContext", "StaticAuth"]

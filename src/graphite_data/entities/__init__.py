# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Bundled entities (login, role, login_log)."""

from .login import Login
from .login_log import LoginLog
from .role import Role

__all__ = ["Login", "LoginLog", "Role"]

# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""LoginLog entity: one row per successful login."""

from .record import LoginLog

__all__ = ["LoginLog"]

# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Role entity: named permission groups granted to logins."""

from .record import Role

__all__ = ["Role"]

# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Login entity: user accounts with role membership."""

from .record import Login

__all__ = ["Login"]

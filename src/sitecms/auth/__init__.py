# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Admin authentication.

This package provides:
- The single admin credential loaded from the environment (argon2-hashed)
- Signed session tokens (itsdangerous) backed by a server-side session table
"""

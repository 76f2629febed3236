#!/usr/bin/env python3
"""Print an argon2 hash of the admin password, for use as ADMIN_PASS_HASH."""
from __future__ import annotations

from getpass import getpass

from sitecms.auth.credentials import hash_password, verify_password


def main() -> None:
    pw1 = getpass("Password: ")
    pw2 = getpass("Repeat password: ")
    if pw1 != pw2:
        raise SystemExit("Passwords do not match")

    ph = hash_password(pw1)
    if not verify_password(ph, pw1):
        raise SystemExit("Hash verification failed")
    print(f"ADMIN_PASS_HASH={ph}")


if __name__ == "__main__":
    main()

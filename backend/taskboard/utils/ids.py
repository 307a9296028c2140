"""Identifier generation for boards, cards and reminders."""

import secrets

# Ids travel through JavaScript clients, so they must stay exact as doubles
_ID_BITS = 53


def new_id() -> int:
    """Return a random positive integer id."""
    return secrets.randbits(_ID_BITS - 1) | (1 << (_ID_BITS - 2))

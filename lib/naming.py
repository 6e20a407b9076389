"""Run identifiers used to suffix every ephemeral preflight resource name."""

import secrets

from lib.constants import UID_ALPHABET, UID_LENGTH


def new_run_uid() -> str:
    """Generate a random run UID.

    Each of the ``UID_LENGTH`` characters is drawn independently and uniformly
    from ``UID_ALPHABET`` using the OS CSPRNG. Uniqueness is probabilistic: two
    runs collide with probability 1/36**6 (about 4.6e-10), and among n runs the
    chance of any collision is roughly n**2 / (2 * 36**6).

    Raises:
        OSError: If the system random source is unavailable.
    """
    return "".join(secrets.choice(UID_ALPHABET) for _ in range(UID_LENGTH))


def resource_name(prefix: str, uid: str) -> str:
    """Build the name of an ephemeral resource for a run."""
    return f"{prefix}{uid}"

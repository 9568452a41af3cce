"""Password hashing utilities.

Learn: Uses bcrypt for secure password hashing. bcrypt automatically
handles salting and is resistant to rainbow table attacks.
The work factor (rounds=12 by default) takes ~250ms per hash on modern
hardware, which is why AuthService runs these calls in a worker thread.
"""

from functools import cached_property

import bcrypt

# bcrypt only looks at the first 72 bytes of the input.
_MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """bcrypt hashing with a configurable work factor."""

    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        """Hash a password with bcrypt.

        Learn: bcrypt includes a random salt automatically and produces
        hashes starting with "$2b$". Passwords are truncated to 72 bytes
        (bcrypt's limit).
        """
        pw_bytes = password.encode("utf-8")[:_MAX_PASSWORD_BYTES]
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(pw_bytes, salt).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        """Verify a password against its hash.

        Returns False for a digest bcrypt cannot parse instead of raising.
        """
        try:
            pw_bytes = password.encode("utf-8")[:_MAX_PASSWORD_BYTES]
            return bcrypt.checkpw(pw_bytes, password_hash.encode("utf-8"))
        except (ValueError, TypeError):
            return False

    def dummy_verify(self, password: str) -> bool:
        """Burn one verification's worth of CPU for an unknown account.

        Learn: Without this, "no such email" answers in microseconds while
        "wrong password" takes a full bcrypt round, which reveals
        which emails are registered. Always returns False.
        """
        self.verify(password, self._dummy_hash)
        return False

    @cached_property
    def _dummy_hash(self) -> str:
        return self.hash("collabspec-timing-equalizer")

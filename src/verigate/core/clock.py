"""Clock and secure randomness providers.

Everything that needs the current time or random bytes receives one of these
through its constructor, so tests can pin time and randomness.

Security Note:
    Verification codes and window entry ids are drawn from `secrets`
    (the operating system CSPRNG), never from `random`.
"""

import secrets
import time
from datetime import datetime, timezone


class SystemClock:
    """Wall clock in epoch milliseconds plus a monotonic timer for durations."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()


class SecureRandomSource:
    """Cryptographically secure random bytes."""

    def random_bytes(self, length: int) -> bytes:
        return secrets.token_bytes(length)

    def token_hex(self, length: int = 8) -> str:
        return secrets.token_hex(length)


def generate_numeric_code(length: int, random_source: SecureRandomSource) -> str:
    """Draw `length` decimal digits from a secure random source.

    Each digit is one random byte reduced modulo 10. Since 256 is not a
    multiple of 10, digits 0-5 occur with probability 26/256 and digits 6-9
    with 25/256. The resulting bias is under half a percent per digit and is
    accepted for short-lived, attempt-limited codes.

    Args:
        length: Number of digits, must be positive.
        random_source: Source of secure random bytes.

    Returns:
        A string of exactly `length` digits, leading zeros preserved.
    """
    if length <= 0:
        raise ValueError("Code length must be positive")
    raw = random_source.random_bytes(length)
    return "".join(str(byte % 10) for byte in raw)

"""Passphrase challenge stored in bundle metadata.

``plain`` keeps the passphrase base64-encoded, so anyone holding the
artifact can read it back. It only lets the extractor reject a wrong
passphrase before decrypting. ``argon2id`` stores an Argon2id hash instead
and answers the same equality question without disclosing the passphrase.
"""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass

from .constants import CHALLENGE_ARGON2ID, CHALLENGE_NONE, CHALLENGE_PLAIN
from .errors import MalformedBundle


SCHEMES = {
    "none": CHALLENGE_NONE,
    "plain": CHALLENGE_PLAIN,
    "argon2id": CHALLENGE_ARGON2ID,
}


@dataclass(frozen=True)
class Challenge:
    scheme: int
    text: str = ""

    @property
    def required(self) -> bool:
        return self.scheme != CHALLENGE_NONE

    def matches(self, candidate: str) -> bool:
        if self.scheme == CHALLENGE_NONE:
            return candidate == ""
        if self.scheme == CHALLENGE_PLAIN:
            return self.reveal() == candidate
        if self.scheme == CHALLENGE_ARGON2ID:
            # argon2-cffi is only needed by artifacts that use this scheme
            from argon2 import PasswordHasher
            from argon2.exceptions import InvalidHashError, VerificationError

            try:
                return PasswordHasher().verify(self.text, candidate)
            except VerificationError:
                return False
            except InvalidHashError as exc:
                raise MalformedBundle(f"Invalid passphrase hash in bundle: {exc}") from exc
        raise MalformedBundle(f"Unknown challenge scheme: {self.scheme}")

    def reveal(self) -> str:
        """Recover the passphrase from a ``plain`` challenge."""
        if self.scheme != CHALLENGE_PLAIN:
            raise ValueError("Only plain challenges can be revealed")
        try:
            return base64.b64decode(self.text.encode("ascii"), validate=True).decode("utf-8")
        except (binascii.Error, UnicodeError) as exc:
            raise MalformedBundle(f"Invalid passphrase challenge in bundle: {exc}") from exc


def make_challenge(secret: str, scheme: str = "plain") -> Challenge:
    """Build the challenge for ``secret``; an empty secret means no challenge."""
    if scheme not in ("plain", "argon2id"):
        raise ValueError(f"Unknown challenge scheme: {scheme}")
    if not secret:
        return Challenge(CHALLENGE_NONE)
    if SCHEMES[scheme] == CHALLENGE_PLAIN:
        return Challenge(CHALLENGE_PLAIN, base64.b64encode(secret.encode("utf-8")).decode("ascii"))
    from argon2 import PasswordHasher

    return Challenge(CHALLENGE_ARGON2ID, PasswordHasher().hash(secret))

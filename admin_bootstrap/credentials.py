"""Admin credential resolution and hashing."""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import bcrypt

from .errors import ConfigurationError

# Same shape as the platform's generated tokens.
TOKEN_ALPHABET = "bcdfghjklmnpqrstvwxz2456789"
TOKEN_LENGTH = 54
BCRYPT_ROUNDS = 10
# bcrypt only reads the first 72 bytes; bcrypt>=5 rejects anything longer.
MAX_PASSWORD_BYTES = 72


@dataclass(frozen=True)
class Credential:
    password: str
    must_change_password: bool

    def __repr__(self) -> str:
        return f"Credential(password='***', must_change_password={self.must_change_password})"


def check_password_length(password: str, source: str = "password") -> None:
    size = len(password.encode("utf-8"))
    if size > MAX_PASSWORD_BYTES:
        raise ConfigurationError(
            f"{source} is {size} bytes long; at most {MAX_PASSWORD_BYTES} bytes are supported"
        )


def validate_sources(password: Optional[str], password_file: Optional[str]) -> None:
    """Reject configurations that set both credential sources or an unhashable password."""
    if password and password_file:
        raise ConfigurationError(
            "only one option can be set for password and password-file"
        )
    if password:
        check_password_length(password)


def generate_token() -> str:
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(TOKEN_LENGTH))


def resolve_credential(
    password: Optional[str] = None,
    password_file: Optional[str] = None,
) -> Credential:
    """Pick the admin credential.

    An explicit password wins, then the contents of ``password_file`` with a
    single trailing newline removed. With neither, a random token is generated
    and the account is flagged to change it on first login.

    Raises:
        ConfigurationError: both sources are set, or the password is longer
            than ``MAX_PASSWORD_BYTES``.
        OSError: the password file cannot be read.
    """
    validate_sources(password, password_file)

    if password:
        return Credential(password=password, must_change_password=False)

    if password_file:
        text = Path(password_file).read_text(encoding="utf-8").removesuffix("\n")
        check_password_length(text, source=f"password in {password_file}")
        return Credential(password=text, must_change_password=False)

    return Credential(password=generate_token(), must_change_password=True)


def hash_password(password: str) -> str:
    """Hash a plaintext password with bcrypt."""
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))

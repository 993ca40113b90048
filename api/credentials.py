"""
Credential Set
--------------
Ordered, read-only list of upstream API tokens.

Order is rotation priority. The set may be empty; emptiness is only an
error once a request needs a credential.
"""

from typing import Iterable, Iterator, Mapping, Optional, Tuple

from infra.config import SecretManager


class CredentialSet:
    """Immutable sequence of credentials in priority order."""

    __slots__ = ("_credentials",)

    def __init__(self, credentials: Iterable[str] = ()):
        object.__setattr__(
            self, "_credentials", tuple(c for c in credentials if c)
        )

    def __setattr__(self, name, value):
        raise AttributeError("CredentialSet is immutable")

    def __iter__(self) -> Iterator[str]:
        return iter(self._credentials)

    def __len__(self) -> int:
        return len(self._credentials)

    def __repr__(self) -> str:
        tails = ", ".join(f"...{tail(c)}" for c in self._credentials)
        return f"CredentialSet([{tails}])"

    def is_empty(self) -> bool:
        return not self._credentials

    @property
    def credentials(self) -> Tuple[str, ...]:
        return self._credentials


def tail(credential: str, length: int = 4) -> str:
    """Last characters of a credential, safe to log."""
    return credential[-length:] if credential else ""


def load_credentials(environ: Optional[Mapping[str, str]] = None) -> CredentialSet:
    """Build the credential set from PANDA_SCORE_TOKEN[_FALLBACK]."""
    return CredentialSet(SecretManager(environ).ordered_values())

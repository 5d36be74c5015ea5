"""
Credential Resolver — collect a user's provider keys for one request.

Direct keys (openai / anthropic / google) come from the user's profile,
the OpenRouter key from the keyed-credential table. A missing profile or
missing OpenRouter row just yields a partial set. Blank values count as
absent. Store failures surface as CredentialResolutionError; no retries.

The resulting CredentialSet is built fresh per dispatch and never cached.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from switchboard.errors import CredentialResolutionError
from switchboard.routing import Provider
from switchboard.storage.base import CredentialStore

logger = logging.getLogger(__name__)


def _clean(value) -> str | None:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class CredentialSet:
    """At most one present secret per provider."""
    openai: str | None = None
    anthropic: str | None = None
    google: str | None = None
    openrouter: str | None = None

    def __post_init__(self):
        for provider in Provider:
            object.__setattr__(self, provider.value, _clean(getattr(self, provider.value)))

    def get(self, provider: Provider) -> str | None:
        return getattr(self, Provider(provider).value)

    def has(self, provider: Provider) -> bool:
        return self.get(provider) is not None

    def present(self) -> list[Provider]:
        return [p for p in Provider if self.has(p)]

    def __repr__(self) -> str:
        # Keys stay out of logs and tracebacks
        return f"CredentialSet(present={[p.value for p in self.present()]})"


class CredentialResolver:
    """Reads credentials through the store interface. Stateless, safe to share."""

    def __init__(self, store: CredentialStore):
        self.store = store

    def resolve(self, user_id: str) -> CredentialSet:
        try:
            profile = self.store.get_profile_credentials(user_id) or {}
            aggregator = self.store.get_aggregator_credential(user_id)
        except Exception as e:
            logger.error("Credential lookup failed for user %s: %s", user_id, e)
            raise CredentialResolutionError(
                f"Could not read credentials for user {user_id}: {e}"
            ) from e

        credentials = CredentialSet(
            openai=profile.get("openai"),
            anthropic=profile.get("anthropic"),
            google=profile.get("google"),
            openrouter=aggregator,
        )
        logger.debug("Resolved credentials for user %s: %r", user_id, credentials)
        return credentials

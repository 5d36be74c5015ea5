"""
Personalised system prompt built from the user's profile.
Applied by callers before dispatch; the dispatcher never reads profiles.
"""

from __future__ import annotations

from switchboard.storage.models import UserProfile
from switchboard.turns import SYSTEM, Turn, normalize_turns


def build_system_prompt(profile: UserProfile | None) -> str | None:
    """None when the profile carries no personalisation."""
    if profile is None:
        return None
    traits = [t for t in (profile.chat_traits or []) if t]
    if not (profile.preferred_name or profile.occupation or traits):
        return None

    prompt = "You are a helpful AI assistant. "
    if profile.preferred_name:
        prompt += f"The user prefers to be called {profile.preferred_name}. "
    if profile.occupation:
        prompt += f"They work as a {profile.occupation}. "
    if traits:
        prompt += f"Their communication preferences: {', '.join(traits)}. "
    return prompt + "Please tailor your responses accordingly."


def personalize(turns, profile: UserProfile | None) -> tuple[Turn, ...]:
    """Prepend the profile prompt as the first system turn, if there is one."""
    snapshot = normalize_turns(turns)
    prompt = build_system_prompt(profile)
    if prompt is None:
        return snapshot
    return (Turn(role=SYSTEM, content=prompt),) + snapshot

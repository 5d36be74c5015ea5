"""
Storage collaborators: credential reads and message writes.
"""
from switchboard.storage.base import CredentialStore, MessageStore
from switchboard.storage.models import Context, Message, UserProfile

__all__ = [
    "CredentialStore",
    "MessageStore",
    "Context",
    "Message",
    "UserProfile",
]

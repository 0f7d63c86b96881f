# Overview: Explicit caller identity passed into every ledger coordinator.

from __future__ import annotations

from dataclasses import dataclass

ENTRY_MANUAL = "manual"
ENTRY_API = "api"


@dataclass(frozen=True)
class Actor:
    """
    Who is performing a ledger operation.

    Web requests carry a user_id from the session token; mobile requests
    carry the api_key_id that passed the key gate. entry_method follows
    from which of the two it is.
    """
    user_id: int | None = None
    api_key_id: int | None = None

    @classmethod
    def for_user(cls, user_id: int) -> "Actor":
        return cls(user_id=user_id)

    @classmethod
    def for_api_key(cls, api_key_id: int) -> "Actor":
        return cls(api_key_id=api_key_id)

    @property
    def entry_method(self) -> str:
        return ENTRY_API if self.api_key_id is not None else ENTRY_MANUAL

    def stamps(self) -> dict:
        """Attribution columns shared by sales, payments and stock movements."""
        return {
            "created_by_user_id": self.user_id,
            "api_key_id": self.api_key_id,
        }

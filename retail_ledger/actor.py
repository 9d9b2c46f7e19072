"""
Actor context passed into every mutating operation.

Users live in the identity system; the engine only records which
user id performed a change. The very first records (seeded chart
of accounts, the first user's own record upstream) are written by
the bootstrap actor, whose id is None.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ActorContext:
    user_id: int | None

    @classmethod
    def bootstrap(cls) -> "ActorContext":
        return cls(user_id=None)

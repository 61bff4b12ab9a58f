from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class RankingEntry:
    position: int
    display_name: str
    score: int
    connection_id: str

    def to_dict(self) -> dict:
        return {
            'position': self.position,
            'displayName': self.display_name,
            'score': self.score,
            'connectionId': self.connection_id,
        }


class RankingService:
    """Leaderboard for one room, read from the player ledger."""

    def __init__(self, ledger):
        self.ledger = ledger

    def rank(self, room_id) -> List[RankingEntry]:
        """Score descending, then display name ascending.

        Positions are 1-based and never shared: equal scores sit next to
        each other in name order.
        """
        ordered = sorted(
            self.ledger.players_in_room(room_id),
            key=lambda p: (-p.score, p.display_name),
        )
        return [
            RankingEntry(
                position=i + 1,
                display_name=p.display_name,
                score=p.score,
                connection_id=p.connection_id,
            )
            for i, p in enumerate(ordered)
        ]

    def rank_payload(self, room_id) -> List[dict]:
        return [entry.to_dict() for entry in self.rank(room_id)]

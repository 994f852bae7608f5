"""Fan polls: default questions, the in-memory poll store and the voting service."""

import asyncio
import copy
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from ..errors import ClientInputError, DuplicateVoteError, PollNotFoundError
from ..logging import get_logger
from ..schema import Poll, PollOption, PollResponse

logger = get_logger(__name__)

DEFAULT_INSIGHT = "Thanks for voting! Check back later for more polls and insights."

INSIGHTS = {
    "Who wins the 2025-26 NBA MVP?":
        "SGA is looking to claim his first MVP after leading OKC to the best record in the league. "
        "Can anyone stop him?",
    "Who wins 2025-26 Rookie of the Year?":
        "Cooper Flagg was the #1 overall pick, but this rookie class is deep. "
        "The race could go down to the wire.",
    "Are the Detroit Pistons a legitimate championship contender?":
        "The Pistons went from the worst record in 2023-24 to a playoff contender. "
        "Cade Cunningham has taken a massive leap.",
    "Who finishes as the 2 seed in the West?":
        "The Western Conference is stacked: just 4 games separate the 2nd and 6th seeds "
        "heading into the stretch run.",
}


def _poll(poll_id: str, question: str, options: list[str], context: str) -> Poll:
    return Poll(
        id=poll_id,
        question=question,
        options=[PollOption(text=text) for text in options],
        event_context=context,
    )


def default_polls() -> list[Poll]:
    """Fresh copies of the seeded polls, all votes at zero."""
    return [
        _poll(
            "1",
            "Who wins the 2025-26 NBA MVP?",
            ["Shai Gilgeous-Alexander", "Cade Cunningham", "Nikola Jokic", "Victor Wembanyama"],
            "2025-26 NBA MVP Race",
        ),
        _poll(
            "2",
            "Who wins 2025-26 Rookie of the Year?",
            ["Cooper Flagg", "Ace Bailey", "Dylan Harper", "Kon Knueppel", "Someone else"],
            "2025-26 Rookie of the Year",
        ),
        _poll(
            "3",
            "Are the Detroit Pistons a legitimate championship contender?",
            ["Yes, they're for real", "No, they'll fold in the playoffs", "Ask me in April"],
            "2025-26 Pistons Contender Debate",
        ),
        _poll(
            "4",
            "Who finishes as the 2 seed in the West?",
            [
                "Oklahoma City Thunder",
                "San Antonio Spurs",
                "Denver Nuggets",
                "Houston Rockets",
                "Minnesota Timberwolves",
            ],
            "2025-26 Western Conference Race",
        ),
    ]


def insight_for(question: str) -> str:
    return INSIGHTS.get(question, DEFAULT_INSIGHT)


class PollStore(Protocol):
    async def read_polls(self, active_only: bool = True) -> list[Poll]: ...

    async def get_poll(self, poll_id: str) -> Optional[Poll]: ...

    async def update_poll_options(self, poll_id: str, options: Sequence[PollOption]) -> None: ...

    async def insert_vote_record(self, poll_id: str, voter_key: str, option_index: int) -> None: ...

    async def record_vote(self, poll_id: str, voter_key: str, option_index: int) -> Poll: ...


class InMemoryPollStore:
    """Poll storage used when no database is configured."""

    def __init__(self, polls: Optional[list[Poll]] = None):
        seeded = polls if polls is not None else default_polls()
        self._polls: dict[str, Poll] = {poll.id: poll for poll in seeded}
        self._responses: dict[tuple[str, str], PollResponse] = {}
        self._lock = asyncio.Lock()

    async def read_polls(self, active_only: bool = True) -> list[Poll]:
        polls = [copy.deepcopy(poll) for poll in self._polls.values()]
        if active_only:
            polls = [poll for poll in polls if poll.active]
        return polls

    async def get_poll(self, poll_id: str) -> Optional[Poll]:
        poll = self._polls.get(poll_id)
        return copy.deepcopy(poll) if poll else None

    async def update_poll_options(self, poll_id: str, options: Sequence[PollOption]) -> None:
        async with self._lock:
            poll = self._polls.get(poll_id)
            if poll is None:
                raise PollNotFoundError("Poll not found")
            poll.options = [PollOption(text=o.text, votes=o.votes) for o in options]

    async def insert_vote_record(self, poll_id: str, voter_key: str, option_index: int) -> None:
        async with self._lock:
            self._insert_response(poll_id, voter_key, option_index)

    def _insert_response(self, poll_id: str, voter_key: str, option_index: int) -> None:
        key = (poll_id, voter_key)
        if key in self._responses:
            raise DuplicateVoteError("You have already voted on this poll")
        self._responses[key] = PollResponse(poll_id, option_index, voter_key)

    async def record_vote(self, poll_id: str, voter_key: str, option_index: int) -> Poll:
        async with self._lock:
            poll = self._polls.get(poll_id)
            if poll is None:
                raise PollNotFoundError("Poll not found")
            if not 0 <= option_index < len(poll.options):
                raise ClientInputError("Invalid option index")

            self._insert_response(poll_id, voter_key, option_index)
            poll.options[option_index].votes += 1
            return copy.deepcopy(poll)


@dataclass
class VoteResult:
    poll: Poll
    insight: str

    def to_payload(self) -> dict[str, Any]:
        return {"success": True, "poll": self.poll.to_record(), "insight": self.insight}


class PollService:
    """Lists active polls and records votes with a one-vote-per-voter guard."""

    def __init__(self, store: PollStore):
        self.store = store

    async def list_active_polls(self) -> list[Poll]:
        return await self.store.read_polls(active_only=True)

    async def vote(self, poll_id: Any, option_index: Any, voter_key: Any) -> VoteResult:
        """Validate and record a vote.

        Raises:
            ClientInputError: missing or malformed fields, or an out-of-range option
            PollNotFoundError: unknown poll id
            DuplicateVoteError: the voter already answered this poll
        """
        if poll_id is None or poll_id == "" or option_index is None:
            raise ClientInputError("Missing required fields: pollId, optionIndex")
        if not isinstance(poll_id, (str, int)) or isinstance(poll_id, bool):
            raise ClientInputError("pollId must be a string")
        if not isinstance(option_index, int) or isinstance(option_index, bool):
            raise ClientInputError("optionIndex must be an integer")
        if not voter_key or not isinstance(voter_key, str):
            raise ClientInputError("Could not determine voter identity")

        poll_id = str(poll_id)
        poll = await self.store.get_poll(poll_id)
        if poll is None:
            raise PollNotFoundError("Poll not found")

        if option_index < 0 or option_index >= len(poll.options):
            raise ClientInputError("Invalid option index")

        poll = await self.store.record_vote(poll_id, voter_key, option_index)

        logger.info("Vote recorded", poll_id=poll_id, option_index=option_index)
        return VoteResult(poll=poll, insight=insight_for(poll.question))

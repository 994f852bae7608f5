"""
Team registry and keyword matching.

Maps free text (headline plus summary) to the NBA teams it mentions. Matching
is plain substring search over lowercase text, so partial forms like "cavs"
also hit inside longer words.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Team:
    """An NBA franchise."""
    abbreviation: str
    name: str
    city: str
    conference: str
    division: str

    @property
    def full_name(self) -> str:
        return f"{self.city} {self.name}"


TEAMS: tuple[Team, ...] = (
    # Eastern Conference - Atlantic
    Team("BOS", "Celtics", "Boston", "Eastern", "Atlantic"),
    Team("BKN", "Nets", "Brooklyn", "Eastern", "Atlantic"),
    Team("NYK", "Knicks", "New York", "Eastern", "Atlantic"),
    Team("PHI", "76ers", "Philadelphia", "Eastern", "Atlantic"),
    Team("TOR", "Raptors", "Toronto", "Eastern", "Atlantic"),
    # Eastern Conference - Central
    Team("CHI", "Bulls", "Chicago", "Eastern", "Central"),
    Team("CLE", "Cavaliers", "Cleveland", "Eastern", "Central"),
    Team("DET", "Pistons", "Detroit", "Eastern", "Central"),
    Team("IND", "Pacers", "Indiana", "Eastern", "Central"),
    Team("MIL", "Bucks", "Milwaukee", "Eastern", "Central"),
    # Eastern Conference - Southeast
    Team("ATL", "Hawks", "Atlanta", "Eastern", "Southeast"),
    Team("CHA", "Hornets", "Charlotte", "Eastern", "Southeast"),
    Team("MIA", "Heat", "Miami", "Eastern", "Southeast"),
    Team("ORL", "Magic", "Orlando", "Eastern", "Southeast"),
    Team("WAS", "Wizards", "Washington", "Eastern", "Southeast"),
    # Western Conference - Northwest
    Team("DEN", "Nuggets", "Denver", "Western", "Northwest"),
    Team("MIN", "Timberwolves", "Minnesota", "Western", "Northwest"),
    Team("OKC", "Thunder", "Oklahoma City", "Western", "Northwest"),
    Team("POR", "Trail Blazers", "Portland", "Western", "Northwest"),
    Team("UTA", "Jazz", "Utah", "Western", "Northwest"),
    # Western Conference - Pacific
    Team("GSW", "Warriors", "Golden State", "Western", "Pacific"),
    Team("LAC", "Clippers", "LA", "Western", "Pacific"),
    Team("LAL", "Lakers", "Los Angeles", "Western", "Pacific"),
    Team("PHX", "Suns", "Phoenix", "Western", "Pacific"),
    Team("SAC", "Kings", "Sacramento", "Western", "Pacific"),
    # Western Conference - Southwest
    Team("DAL", "Mavericks", "Dallas", "Western", "Southwest"),
    Team("HOU", "Rockets", "Houston", "Western", "Southwest"),
    Team("MEM", "Grizzlies", "Memphis", "Western", "Southwest"),
    Team("NOP", "Pelicans", "New Orleans", "Western", "Southwest"),
    Team("SAS", "Spurs", "San Antonio", "Western", "Southwest"),
)

TEAM_REGISTRY: dict[str, Team] = {team.abbreviation: team for team in TEAMS}

TEAM_KEYWORDS: dict[str, tuple[str, ...]] = {
    "LAL": ("lakers", "lebron", "anthony davis", "la lakers", "los angeles lakers"),
    "GSW": ("warriors", "golden state", "stephen curry", "steph curry", "klay thompson", "draymond"),
    "BOS": ("celtics", "boston", "jayson tatum", "jaylen brown"),
    "MIA": ("heat", "miami", "jimmy butler", "bam adebayo"),
    "PHX": ("suns", "phoenix", "kevin durant", "devin booker"),
    "MIL": ("bucks", "milwaukee", "giannis", "antetokounmpo"),
    "DEN": ("nuggets", "denver", "jokic", "nikola jokic"),
    "PHI": ("76ers", "sixers", "philadelphia", "joel embiid"),
    "NYK": ("knicks", "new york knicks", "jalen brunson"),
    "DAL": ("mavericks", "mavs", "dallas", "luka doncic", "kyrie irving"),
    "LAC": ("clippers", "la clippers", "kawhi leonard", "paul george"),
    "BKN": ("nets", "brooklyn"),
    "ATL": ("hawks", "atlanta", "trae young"),
    "CHI": ("bulls", "chicago bulls"),
    "CLE": ("cavaliers", "cavs", "cleveland", "donovan mitchell"),
    "DET": ("pistons", "detroit"),
    "IND": ("pacers", "indiana", "tyrese haliburton"),
    "TOR": ("raptors", "toronto"),
    "CHA": ("hornets", "charlotte"),
    "ORL": ("magic", "orlando", "paolo banchero"),
    "WAS": ("wizards", "washington"),
    "MIN": ("timberwolves", "wolves", "minnesota", "anthony edwards"),
    "OKC": ("thunder", "oklahoma", "shai gilgeous"),
    "POR": ("blazers", "trail blazers", "portland"),
    "UTA": ("jazz", "utah"),
    "SAC": ("kings", "sacramento"),
    "HOU": ("rockets", "houston"),
    "MEM": ("grizzlies", "memphis", "ja morant"),
    "NOP": ("pelicans", "new orleans", "zion williamson"),
    "SAS": ("spurs", "san antonio", "victor wembanyama", "wemby"),
}

ALL_TEAMS = "ALL"

T = TypeVar("T")


def match_teams(headline: str, body: str | None = None) -> frozenset[str]:
    """Return the abbreviations of every team mentioned in the text."""
    text = f"{headline or ''} {body or ''}".lower()
    if not text.strip():
        return frozenset()

    matched = set()
    for abbreviation, keywords in TEAM_KEYWORDS.items():
        if any(keyword in text for keyword in keywords):
            matched.add(abbreviation)

    return frozenset(matched)


def normalize_team(team: str | None) -> str | None:
    """Uppercase a team filter; None and "ALL" mean no filter."""
    if team is None:
        return None
    team = team.strip().upper()
    if not team or team == ALL_TEAMS:
        return None
    return team


def filter_by_team(items: Iterable[T], team: str | None) -> list[T]:
    """Keep items whose ``teams`` contain the requested abbreviation."""
    items = list(items)
    wanted = normalize_team(team)
    if wanted is None:
        return items

    if wanted not in TEAM_REGISTRY:
        logger.debug(f"Filtering by unknown team {wanted}")

    return [item for item in items if wanted in item.teams]

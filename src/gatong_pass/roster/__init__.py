"""Roster ingestion for GatongPass.

This subpackage provides:
- CSV parsing and student identifier decoding
- An async adapter for the published spreadsheet export
- A TTL cache in front of the adapter

Example:
    from gatong_pass.roster import RosterCache, RosterSource

    cache = RosterCache(RosterSource(url))
    cached = await cache.get_roster()
"""

from gatong_pass.roster.cache import CachedRoster, RosterCache, RosterFetcher
from gatong_pass.roster.parser import (
    CsvTable,
    decode_student_id,
    parse_csv,
    parse_roster,
)
from gatong_pass.roster.source import RosterSource

__all__ = [
    # Parsing
    "CsvTable",
    "decode_student_id",
    "parse_csv",
    "parse_roster",
    # Source
    "RosterSource",
    # Cache
    "CachedRoster",
    "RosterCache",
    "RosterFetcher",
]

"""Pure scheduling primitives: seeded shuffle, schedule index, and resolver."""

from linearcast.scheduling.index import ScheduleIndex, build_schedule_index, filter_playable
from linearcast.scheduling.resolver import (
    ScheduledProgram,
    ScheduleWindow,
    locate,
    next_program,
    previous_program,
    schedule_window,
    upcoming,
    window,
)
from linearcast.scheduling.shuffle import (
    Mulberry32,
    hash_seed,
    permute,
    random_in_range,
    shuffle_indices,
)

__all__ = [
    # Shuffle
    "Mulberry32",
    "permute",
    "shuffle_indices",
    "random_in_range",
    "hash_seed",
    # Index
    "ScheduleIndex",
    "build_schedule_index",
    "filter_playable",
    # Resolver
    "ScheduledProgram",
    "ScheduleWindow",
    "locate",
    "window",
    "schedule_window",
    "next_program",
    "previous_program",
    "upcoming",
]

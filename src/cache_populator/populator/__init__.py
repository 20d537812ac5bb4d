"""Populators: on-demand read-through and recurring refresh."""

from cache_populator.populator.on_demand import OnDemandPopulator, PopulateIO
from cache_populator.populator.policies import TimeoutPolicy, TimingPolicy
from cache_populator.populator.recurring import RecurringEntry, RecurringPopulator

__all__ = [
    "OnDemandPopulator",
    "PopulateIO",
    "RecurringEntry",
    "RecurringPopulator",
    "TimeoutPolicy",
    "TimingPolicy",
]

"""Users — player profiles, bearer tokens and FP counters."""

from .store import User, UserStore

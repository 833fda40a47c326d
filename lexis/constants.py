"""Shared constants for the Lexis backend."""

# Cache TTLs in seconds. Due-date rankings are more stable than random draws.
ALGORITHMIC_CACHE_TTL = 300
RANDOM_CACHE_TTL = 60

# Prefix for every selection cache key
CACHE_KEY_PREFIX = "word_selection"

# Share of a selection drawn at random when the caller doesn't say
DEFAULT_RANDOM_PERCENTAGE = 40

# The store is asked for this many times the requested count on a cache miss
CACHE_OVERFETCH_FACTOR = 2

# BALANCED strategy weights
BALANCED_STATUS_WEIGHT = 0.3
BALANCED_STRENGTH_WEIGHT = 0.3
BALANCED_RECENCY_WEIGHT = 0.4

# Optimistic concurrency retries when recording performance
MAX_SESSION_WRITE_ATTEMPTS = 3

# Learning progress
MASTERY_STRENGTH = 0.9
MASTERY_REPETITIONS = 3

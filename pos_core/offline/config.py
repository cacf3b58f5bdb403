# =============================================================================
# pos_core/offline/config.py
# Tuning knobs for mode detection, live updates and fallback behaviour
# =============================================================================

from dataclasses import dataclass


@dataclass
class OfflineConfig:
    """Configuration for the dual-mode data layer"""
    probe_timeout: float = 3.0          # Seconds before a probe counts as failed
    reprobe_after_failures: int = 3     # Consecutive unreachable calls before re-probing
    stream_max_retries: int = 5         # Reconnect attempts before re-probing
    backoff_base: float = 0.5           # First reconnect delay in seconds
    backoff_cap: float = 30.0           # Longest reconnect delay in seconds
    referral_bonus_points: int = 100    # Credited to both sides of a referral
    seed_table_count: int = 10          # Tables created on first entry into fallback
    seed_table_capacity: int = 4

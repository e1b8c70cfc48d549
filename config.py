"""Environment-driven settings for the aggregation pipeline."""

from __future__ import annotations

import os
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """How often a literature-database call is attempted and how long to wait in between."""

    max_attempts: int = 2
    delay_seconds: float = 2.0


@dataclass(frozen=True, slots=True)
class PipelineSettings:
    """Tuned constants for the search pipeline.

    The ratios and minimums were picked empirically, so every one of them can
    be overridden through a PAPERSEARCH_* environment variable.
    """

    # Share of max_results spent on the subject paper's references.
    reference_ratio: float = 0.8
    # Share of max_results kept from keyword search when a subject paper exists.
    keyword_ratio: float = 0.2
    min_keyword_additions: int = 2
    max_terms: int = 5
    subject_score: int = 10
    derived_score: int = 7
    request_delay: float = 1.0
    reference_delay: float = 0.5
    scoring_batch_size: int = 5
    batch_delay: float = 1.0
    summary_batch_size: int = 5
    timeout_seconds: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)


def load_settings() -> PipelineSettings:
    """Build settings from PAPERSEARCH_* environment variables."""
    defaults = PipelineSettings()
    return PipelineSettings(
        reference_ratio=_env_float("PAPERSEARCH_REFERENCE_RATIO", defaults.reference_ratio),
        keyword_ratio=_env_float("PAPERSEARCH_KEYWORD_RATIO", defaults.keyword_ratio),
        min_keyword_additions=_env_int("PAPERSEARCH_MIN_KEYWORD_ADDITIONS", defaults.min_keyword_additions),
        max_terms=_env_int("PAPERSEARCH_MAX_TERMS", defaults.max_terms),
        request_delay=_env_float("PAPERSEARCH_REQUEST_DELAY", defaults.request_delay),
        reference_delay=_env_float("PAPERSEARCH_REFERENCE_DELAY", defaults.reference_delay),
        scoring_batch_size=_env_int("PAPERSEARCH_BATCH_SIZE", defaults.scoring_batch_size),
        batch_delay=_env_float("PAPERSEARCH_BATCH_DELAY", defaults.batch_delay),
        summary_batch_size=_env_int("PAPERSEARCH_SUMMARY_BATCH_SIZE", defaults.summary_batch_size),
        timeout_seconds=_env_float("PAPERSEARCH_TIMEOUT", defaults.timeout_seconds),
        retry=RetryPolicy(
            max_attempts=defaults.retry.max_attempts,
            delay_seconds=_env_float("PAPERSEARCH_RETRY_DELAY", defaults.retry.delay_seconds),
        ),
    )


def _env_value(name: str) -> str | None:
    value = os.environ.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _env_float(name: str, default: float) -> float:
    value = _env_value(name)
    return float(value) if value is not None else default


def _env_int(name: str, default: int) -> int:
    value = _env_value(name)
    return int(value) if value is not None else default

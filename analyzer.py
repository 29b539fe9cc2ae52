# analyzer.py
"""
Success-rate correlation over the job history.

Each analyzer is a pure function (history, overall_rate) -> JobPattern.
The set is closed and always evaluated in the order of ANALYZERS; patterns
that match no job are left out of the result.
"""
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, List, Sequence

from models import Job, JobPattern, JobStats, JobStatus

PatternAnalyzer = Callable[[Sequence[Job], float], JobPattern]

_DIGIT = re.compile(r"[0-9]")


def round_rate(value: float) -> float:
    """Round a 0..1 fraction to two decimals, halves going up."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def format_difference(success_rate: float, overall_rate: float) -> str:
    """Signed whole-percentage-point gap, e.g. '+12%', '-5%', '+0%'."""
    points = int(Decimal(str((success_rate - overall_rate) * 100)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return f"+{points}%" if points >= 0 else f"{points}%"


def success_rate(jobs: Sequence[Job]) -> float:
    if not jobs:
        return 0.0
    return sum(1 for job in jobs if job.status == JobStatus.COMPLETED) / len(jobs)


def _report(label: str, matches: List[Job], overall_rate: float) -> JobPattern:
    rate = success_rate(matches)
    return JobPattern(
        pattern=label,
        match_count=len(matches),
        success_rate=round_rate(rate),
        difference_from_average=format_difference(rate, overall_rate),
    )


def analyze_name_length(jobs: Sequence[Job], overall_rate: float) -> JobPattern:
    return _report("Job name length > 10", [j for j in jobs if len(j.name) > 10], overall_rate)


def analyze_name_digits(jobs: Sequence[Job], overall_rate: float) -> JobPattern:
    return _report("Job name contains digits", [j for j in jobs if _DIGIT.search(j.name)], overall_rate)


def analyze_argument_count(jobs: Sequence[Job], overall_rate: float) -> JobPattern:
    return _report("Jobs with 3+ arguments", [j for j in jobs if len(j.arguments) >= 3], overall_rate)


def analyze_name_prefix(jobs: Sequence[Job], overall_rate: float) -> JobPattern:
    return _report("Job name starts with 'test'", [j for j in jobs if j.name.lower().startswith("test")], overall_rate)


ANALYZERS: List[PatternAnalyzer] = [
    analyze_name_length,
    analyze_name_digits,
    analyze_argument_count,
    analyze_name_prefix,
]


def analyze_patterns(jobs: Sequence[Job], overall_rate: float) -> List[JobPattern]:
    reports = [analyzer(jobs, overall_rate) for analyzer in ANALYZERS]
    return [r for r in reports if r.match_count > 0]


def compute_stats(history: Sequence[Job]) -> JobStats:
    # The unrounded overall rate is the baseline for every pattern; only the
    # reported figure is rounded.
    if not history:
        return JobStats(total_jobs=0, overall_success_rate=0.0, patterns=[])
    overall = success_rate(history)
    return JobStats(
        total_jobs=len(history),
        overall_success_rate=round_rate(overall),
        patterns=analyze_patterns(history, overall),
    )

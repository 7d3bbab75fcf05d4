# variant_preview/timeutils.py
from __future__ import annotations

from typing import Iterable, Tuple, Union


# -----------------------------
# Time formatting / conversion
# -----------------------------

def ms_to_time_str(ms: int) -> str:
    if ms is None:
        ms = 0
    ms = max(0, int(ms))
    s = ms // 1000
    m = s // 60
    s = s % 60
    return f"{m:02d}:{s:02d}"


def seconds_to_time_str(sec: float) -> str:
    if sec is None:
        sec = 0.0
    return ms_to_time_str(int(round(float(sec) * 1000.0)))


def seconds_to_ms(sec: float) -> int:
    return int(round(float(sec or 0.0) * 1000.0))


def ms_to_seconds(ms: int) -> float:
    return float(ms or 0) / 1000.0


def timestamp_to_seconds(ts: Union[dict, str, int, float, None]) -> float:
    """
    Parse an analysis time offset into seconds.

    Accepts protobuf-style duration dicts ({"seconds": 1, "nanos": 5e8}, either key
    may be missing), duration strings ("1.500s") and plain numbers.
    """
    if ts is None:
        return 0.0
    if isinstance(ts, bool):
        raise ValueError(f"Unsupported timestamp: {ts!r}")
    if isinstance(ts, (int, float)):
        return float(ts)
    if isinstance(ts, dict):
        seconds = float(ts.get("seconds", 0) or 0)
        nanos = float(ts.get("nanos", 0) or 0)
        return seconds + nanos / 1e9
    if isinstance(ts, str):
        s = ts.strip()
        if s.endswith("s"):
            s = s[:-1]
        return float(s) if s else 0.0
    raise ValueError(f"Unsupported timestamp: {ts!r}")


def total_duration_s(spans: Iterable[Tuple[float, float]]) -> float:
    """Sum of (end - start) over the given spans."""
    return sum(float(end) - float(start) for start, end in spans)


def default_target_duration(duration_s: float) -> Tuple[int, int]:
    """
    Default target duration for generated variants and the slider step.
    Videos of a minute or more step by 10s, shorter ones by 5s; the default is
    half the video rounded down to a step, capped at 30s.
    Returns (target_s, step_s).
    """
    step = 10 if duration_s >= 60 else 5
    half = int(duration_s / 2 + 0.5)
    return min(30, half - (half % step)), step


def seconds_to_timestamp(sec: float) -> dict:
    """Inverse of timestamp_to_seconds for the protobuf duration dict form."""
    total_ns = int(round(float(sec or 0.0) * 1e9))
    seconds, nanos = divmod(total_ns, 1_000_000_000)
    return {"seconds": seconds, "nanos": nanos}

from dataclasses import dataclass


@dataclass(frozen=True)
class TimeRange:
    """
    Value Object representing a valid span of time.
    Enforces that start_seconds is strictly before end_seconds.
    """
    start_seconds: float
    end_seconds: float

    def __post_init__(self):
        if self.start_seconds < 0 or self.end_seconds < 0:
            raise ValueError("Timestamps cannot be negative.")
        if self.start_seconds >= self.end_seconds:
            raise ValueError(f"Start time ({self.start_seconds}) must be before end time ({self.end_seconds}).")

    @property
    def duration(self) -> float:
        return self.end_seconds - self.start_seconds


def format_time(seconds: float) -> str:
    """Converts 125.5 -> 02:05"""
    m, s = divmod(int(seconds), 60)
    return "{:02d}:{:02d}".format(m, s)

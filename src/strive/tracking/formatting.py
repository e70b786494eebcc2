"""Display formatting for live metrics and saved summaries."""


def format_duration(seconds: int) -> str:
    """'M:SS' under an hour, 'H:MM:SS' from one hour up."""
    seconds = max(0, int(seconds))
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_distance(meters: float) -> str:
    """Kilometres with two decimals, e.g. '5.03 km'."""
    return f"{meters / 1000:.2f} km"


def format_speed(kmh: float) -> str:
    return f"{kmh:.1f} km/h"

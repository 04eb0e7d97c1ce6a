import math


def format_time(seconds):
    """Format seconds as ``m:ss.cc`` for the player readout."""
    if seconds is None or not math.isfinite(seconds) or seconds < 0:
        seconds = 0.0
    minutes = int(seconds // 60)
    secs = int(seconds % 60)
    hundredths = int((seconds % 1) * 100)
    return f"{minutes}:{secs:02d}.{hundredths:02d}"


def time_to_fraction(current_time, duration):
    """Playback position as a fraction of the clip, 0 for unknown durations."""
    if not duration or duration <= 0:
        return 0.0
    return max(0.0, min(1.0, current_time / duration))

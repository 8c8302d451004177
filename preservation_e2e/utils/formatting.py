"""
Formatting utilities for harness output.
"""


def format_size(size_bytes: int) -> str:
    """Format byte size to human readable string.

    Args:
        size_bytes: Size in bytes

    Returns:
        Human-readable string like '1.50 GB' or '500 B'
    """
    if size_bytes == 0:
        return '0 B'

    units = ['B', 'KB', 'MB', 'GB', 'TB', 'PB']
    unit_index = 0
    size = float(size_bytes)

    while size >= 1024 and unit_index < len(units) - 1:
        size /= 1024
        unit_index += 1

    return f'{size:.2f} {units[unit_index]}'


def format_duration(seconds: float) -> str:
    """Format elapsed seconds as '850ms', '12.3s' or '4m 05s'."""
    if seconds < 1:
        return f'{seconds * 1000:.0f}ms'
    if seconds < 60:
        return f'{seconds:.1f}s'
    minutes, secs = divmod(int(round(seconds)), 60)
    return f'{minutes}m {secs:02d}s'


def format_throughput(size_bytes: int, seconds: float) -> str:
    """Transfer rate for load-test summaries."""
    if seconds <= 0:
        return 'n/a'
    return f'{format_size(int(size_bytes / seconds))}/s'

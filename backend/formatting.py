from datetime import datetime, timezone


def format_time_ago(timestamp, now=None):
    """Short relative age of a timestamp, e.g. '5 min ago'"""
    if timestamp is None:
        return ''
    now = now or datetime.now(timezone.utc)
    diff = (now - timestamp).total_seconds()

    minutes = int(diff // 60)
    hours = int(diff // 3600)
    days = int(diff // 86400)

    if minutes < 1:
        return 'just now'
    if minutes < 60:
        return f'{minutes} min ago'
    if hours < 24:
        return f'{hours} h ago'
    if days == 1:
        return 'yesterday'
    if days < 7:
        return f'{days} days ago'
    return timestamp.date().isoformat()

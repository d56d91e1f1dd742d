"""Week boundary helpers shared by every weekly aggregation."""

from datetime import datetime, timedelta


def week_start(moment: datetime) -> datetime:
    """Monday 00:00:00 of the week containing `moment`, keeping its tzinfo."""
    monday = moment - timedelta(days=moment.weekday())
    return monday.replace(hour=0, minute=0, second=0, microsecond=0)


def week_label(moment: datetime) -> str:
    """Short M/D label used by trend charts."""
    return f"{moment.month}/{moment.day}"

"""Calendar grid geometry for day and week views.

All positions are computed in the practitioner's local time; appointments are
stored in UTC and converted on the way in.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo

from dateutil import tz
from dateutil.relativedelta import MO, relativedelta

from physio_practice.config import Settings, get_settings
from physio_practice.domain.errors import InputValidationError
from physio_practice.domain.models import Appointment, CalendarBlock, DayView, Practitioner
from physio_practice.services.layout import layout_appointments


def resolve_timezone(tz_name: str) -> tzinfo:
    """Return the tzinfo for an IANA zone name, rejecting unknown names."""
    zone = tz.gettz(tz_name)
    if zone is None:
        raise InputValidationError(f"Unknown time zone: {tz_name}")
    return zone


def practitioner_timezone(practitioner: Practitioner | None) -> str:
    """The practitioner's own zone, or the configured default when unset."""
    if practitioner is not None and practitioner.timezone:
        return practitioner.timezone
    return get_settings().default_timezone


def local_today(tz_name: str) -> date:
    return datetime.now(timezone.utc).astimezone(resolve_timezone(tz_name)).date()


def week_dates(day: date) -> list[date]:
    """The seven dates of the Monday-start week containing ``day``."""
    monday = day + relativedelta(weekday=MO(-1))
    return [monday + timedelta(days=offset) for offset in range(7)]


def day_bounds(day: date, tz_name: str) -> tuple[datetime, datetime]:
    """Local midnight-to-midnight for ``day``, as a half-open UTC range."""
    zone = resolve_timezone(tz_name)
    start = datetime.combine(day, time.min, tzinfo=zone)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def week_bounds(day: date, tz_name: str) -> tuple[datetime, datetime]:
    dates = week_dates(day)
    start, _ = day_bounds(dates[0], tz_name)
    _, end = day_bounds(dates[-1], tz_name)
    return start, end


def hour_slots(settings: Settings | None = None) -> list[int]:
    settings = settings or get_settings()
    return list(range(settings.calendar_first_hour, settings.calendar_last_hour + 1))


def top_offset(local_time: datetime, settings: Settings | None = None) -> float:
    """Pixels from the top of the grid (the first visible hour) to ``local_time``."""
    settings = settings or get_settings()
    minutes = local_time.hour * 60 + local_time.minute
    return (minutes - settings.calendar_first_hour * 60) / 60 * settings.calendar_slot_height


def block_height(
    local_start: datetime, local_end: datetime, settings: Settings | None = None
) -> float:
    settings = settings or get_settings()
    minutes = (local_end - local_start).total_seconds() / 60
    return minutes / 60 * settings.calendar_slot_height


def group_by_local_date(
    appointments: list[Appointment], tz_name: str
) -> dict[date, list[Appointment]]:
    """Bucket appointments by the local calendar date they start on."""
    zone = resolve_timezone(tz_name)
    buckets: dict[date, list[Appointment]] = {}
    for appointment in appointments:
        local_day = appointment.start_time.astimezone(zone).date()
        buckets.setdefault(local_day, []).append(appointment)
    return buckets


def build_day_view(
    day: date,
    appointments: list[Appointment],
    tz_name: str,
    patient_names: dict[str, str] | None = None,
    settings: Settings | None = None,
) -> DayView:
    """Lay out the appointments starting on ``day`` as positioned blocks.

    Appointments starting on other days are ignored; cancelled and no-show
    appointments get no block.
    """
    settings = settings or get_settings()
    zone = resolve_timezone(tz_name)
    patient_names = patient_names or {}

    todays = group_by_local_date(appointments, tz_name).get(day, [])
    layout = layout_appointments(todays)

    blocks: list[CalendarBlock] = []
    for appointment in sorted(todays, key=lambda a: a.start_time):
        placement = layout.get(appointment.id)
        if placement is None:
            continue
        local_start = appointment.start_time.astimezone(zone)
        local_end = appointment.end_time.astimezone(zone)
        blocks.append(
            CalendarBlock(
                appointment_id=appointment.id,
                title=appointment.title,
                patient_name=patient_names.get(appointment.patient_id),
                status=appointment.status,
                start_time=appointment.start_time,
                end_time=appointment.end_time,
                top=top_offset(local_start, settings),
                height=block_height(local_start, local_end, settings),
                left=placement.left,
                width=placement.width,
                column_index=placement.column_index,
                total_columns=placement.total_columns,
            )
        )
    return DayView(date=day, blocks=blocks)


def build_week_view(
    day: date,
    appointments: list[Appointment],
    tz_name: str,
    patient_names: dict[str, str] | None = None,
    settings: Settings | None = None,
) -> list[DayView]:
    return [
        build_day_view(d, appointments, tz_name, patient_names, settings)
        for d in week_dates(day)
    ]

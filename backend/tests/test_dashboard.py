import datetime as dt

from sqlalchemy import delete

from waste_service.models import ReportStatus, ReportStatusValue, ScheduleStatus
from waste_service.services import reports as report_service
from waste_service.services.dashboard import collect_summary
from waste_service.utils.time import local_zone

ROUTE = [(8.22, 124.24), (8.23, 124.25)]


async def test_summary_keeps_persisted_and_derived_apart(session, make_schedule, add_resident):
    await make_schedule(route_points=ROUTE)
    await make_schedule(
        start_time=dt.time(13, 0), end_time=dt.time(15, 0), route_points=ROUTE, status=ScheduleStatus.ongoing
    )
    await make_schedule(date=dt.date(2026, 10, 20), status=ScheduleStatus.completed)
    await make_schedule(start_time=dt.time(6, 0), end_time=dt.time(8, 0), status=ScheduleStatus.completed)

    for n in range(1, 5):
        await add_resident(f"r{n}", mobile=f"+63917000000{n}")
    pending = await report_service.submit_report(session, "r1", "Bin full", "Corner bin")
    resolved = await report_service.submit_report(session, "r1", "Spill", "Oil spill")
    orphan = await report_service.submit_report(session, "r2", "Smoke", "Burning trash")
    await report_service.update_report_status(session, resolved.id, ReportStatusValue.resolved)
    await session.execute(delete(ReportStatus).where(ReportStatus.report_id == orphan.id))
    await session.commit()

    now = dt.datetime(2026, 10, 19, 10, 0, tzinfo=local_zone())
    summary = await collect_summary(session, now=now)

    assert summary.status_counts == {"not-started": 1, "ongoing": 1, "completed": 2}
    assert summary.completed_total == 2
    assert summary.window_ongoing == 1
    assert summary.active_routes == 2
    assert summary.pending_reports == 2
    assert summary.citizen_participation == 50.0
    assert [(d.day, d.total, d.completed, d.efficiency) for d in summary.efficiency_by_day] == [
        ("Mon", 3, 1, 33.3),
        ("Tue", 1, 1, 100.0),
    ]
    assert summary.average_efficiency == 50.0
    assert pending.id != orphan.id


async def test_summary_on_empty_store(session):
    summary = await collect_summary(session, now=dt.datetime(2026, 10, 19, tzinfo=dt.timezone.utc))

    assert summary.status_counts == {"not-started": 0, "ongoing": 0, "completed": 0}
    assert summary.citizen_participation == 0.0
    assert summary.efficiency_by_day == []
    assert summary.average_efficiency == 0.0
    assert summary.recent_activity == []

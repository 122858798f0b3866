"""
Attendance Ledger — gate check-in / check-out.

Volunteers never choose "entry" or "exit": the direction is inferred from the
student's persisted presence and the flip is applied as a compare-and-set, so
two scans racing on the same student can never both record ENTRY.

    OUTSIDE --scan--> INSIDE   (records ENTRY)
    INSIDE  --scan--> OUTSIDE  (records EXIT, with duration since last ENTRY)
"""

from dataclasses import dataclass

from flask import current_app

from stallpass.clock import as_utc, utcnow
from stallpass.errors import ActorNotFound, ParticipantNotFound, ScanConflict, ScanTooSoon
from stallpass.extensions import db
from stallpass.models import CheckInOut, Student, Volunteer
from stallpass.models.attendance import ENTRY, EXIT
from stallpass.models.student import INSIDE, OUTSIDE
from stallpass.services.directory import as_uuid

# current presence -> (next presence, recorded direction)
TRANSITIONS = {
    OUTSIDE: (INSIDE, ENTRY),
    INSIDE: (OUTSIDE, EXIT),
}


@dataclass
class ScanResult:
    direction: str
    record: CheckInOut
    student: Student


def next_transition(presence):
    return TRANSITIONS[presence]


def _observe_presence(student_id):
    return db.session.execute(
        db.select(Student.presence).where(Student.student_id == student_id)
    ).scalar_one_or_none()


def _latest_record(student_id, scan_type=None):
    query = CheckInOut.query.filter_by(student_id=student_id)
    if scan_type:
        query = query.filter_by(scan_type=scan_type)
    return query.order_by(CheckInOut.scanned_at.desc()).first()


def _seconds_between(earlier, later):
    return (as_utc(later) - as_utc(earlier)).total_seconds()


def process_scan(student_id, volunteer_id, now=None, cooldown_seconds=None):
    """
    Toggle a student's presence and record the scan.
    The flag flip and the attendance record commit together or not at all.
    """
    now = as_utc(now or utcnow())
    student_key = as_uuid(student_id)
    volunteer_key = as_uuid(volunteer_id)
    if student_key is None:
        raise ParticipantNotFound()
    if volunteer_key is None:
        raise ActorNotFound()
    if cooldown_seconds is None:
        cooldown_seconds = current_app.config.get("SCAN_COOLDOWN_SECONDS", 0)

    try:
        observed = _observe_presence(student_key)
        if observed is None:
            raise ParticipantNotFound()
        if db.session.get(Volunteer, volunteer_key) is None:
            raise ActorNotFound()

        if cooldown_seconds:
            previous = _latest_record(student_key)
            if previous and _seconds_between(previous.scanned_at, now) < cooldown_seconds:
                raise ScanTooSoon()

        new_presence, direction = next_transition(observed)

        # Compare-and-set: only applies if nobody flipped the flag since we read it
        flipped = db.session.execute(
            db.update(Student)
            .where(Student.student_id == student_key, Student.presence == observed)
            .values(presence=new_presence)
            .execution_options(synchronize_session=False)
        )
        if flipped.rowcount != 1:
            raise ScanConflict()

        duration = None
        if direction == EXIT:
            entry = _latest_record(student_key, ENTRY)
            if entry:
                duration = max(0, int(_seconds_between(entry.scanned_at, now)))

        record = CheckInOut(
            student_id=student_key,
            volunteer_id=volunteer_key,
            scan_type=direction,
            scanned_at=now,
            duration_seconds=duration,
        )
        db.session.add(record)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return ScanResult(direction=direction, record=record, student=db.session.get(Student, student_key))


def history_for_student(student_id):
    return (
        CheckInOut.query.filter_by(student_id=as_uuid(student_id))
        .order_by(CheckInOut.scanned_at.desc())
        .all()
    )


def history_for_volunteer(volunteer_id, limit=50):
    return (
        CheckInOut.query.filter_by(volunteer_id=as_uuid(volunteer_id))
        .order_by(CheckInOut.scanned_at.desc())
        .limit(limit)
        .all()
    )

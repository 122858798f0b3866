"""
Feedback Gate — one rating per (student, stall), capped per student.
A student must be inside the event to leave feedback.
"""

from flask import current_app
from sqlalchemy.exc import IntegrityError

from stallpass.clock import as_utc, utcnow
from stallpass.errors import (
    AlreadyReviewed,
    NotCheckedIn,
    QuotaExceeded,
    RatingOutOfRange,
    StallNotFound,
)
from stallpass.extensions import db
from stallpass.models import Feedback, Stall, Student
from stallpass.services.directory import as_uuid, get_student, verify_stall_token, with_lock

DEFAULT_FEEDBACK_QUOTA = 200
MIN_RATING = 1
MAX_RATING = 5


def feedback_quota():
    return int(current_app.config.get("FEEDBACK_QUOTA", DEFAULT_FEEDBACK_QUOTA))


def validate_rating(rating):
    if isinstance(rating, bool) or not isinstance(rating, (int, float)):
        raise RatingOutOfRange()
    if not MIN_RATING <= rating <= MAX_RATING or rating != int(rating):
        raise RatingOutOfRange()
    return int(rating)


def find_feedback(student_id, stall_id):
    return Feedback.query.filter_by(student_id=student_id, stall_id=stall_id).first()


def submit_feedback(student_id, stall_id, rating, comment=None, now=None):
    """
    Record a student's rating of a stall.

    Checked in order: rating range, student, stall (must be active), already
    reviewed, checked in, quota. The feedback row and both feedback counters
    commit together with the student's row locked.
    """
    rating = validate_rating(rating)
    now = as_utc(now or utcnow())
    quota = feedback_quota()
    stall_key = as_uuid(stall_id)

    def apply(student):
        stall = db.session.get(Stall, stall_key) if stall_key else None
        if not stall or not stall.is_active:
            raise StallNotFound()
        if find_feedback(student.student_id, stall.stall_id):
            raise AlreadyReviewed()
        if not student.is_inside_event:
            raise NotCheckedIn("You must be checked in at the event to submit feedback")
        if student.feedback_count >= quota:
            raise QuotaExceeded(
                f"You have reached the maximum feedback limit ({quota})",
                limit=quota,
            )

        feedback = Feedback(
            student_id=student.student_id,
            stall_id=stall.stall_id,
            rating=rating,
            comment=comment or None,
            submitted_at=now,
        )
        db.session.add(feedback)
        student.feedback_count = Student.feedback_count + 1
        stall.total_feedback_count = Stall.total_feedback_count + 1
        try:
            db.session.flush()
        except IntegrityError as exc:
            # lost a race against a concurrent submission for the same stall
            raise AlreadyReviewed() from exc
        return feedback

    return with_lock(Student, student_id, apply)


def scan_stall(student_id, stall_token):
    """
    Resolve a printed stall token for a student inside the event.
    Returns (stall, existing_feedback_or_None).
    """
    stall = verify_stall_token(stall_token)
    student = get_student(student_id)
    if not student.is_inside_event:
        raise NotCheckedIn("You must be checked in at the event to scan stalls")
    return stall, find_feedback(student.student_id, stall.stall_id)


def visits_for_student(student_id):
    student = get_student(student_id)
    visits = (
        Feedback.query.filter_by(student_id=student.student_id)
        .order_by(Feedback.submitted_at.desc())
        .all()
    )
    return {
        "total_visits": len(visits),
        "remaining_feedbacks": max(0, feedback_quota() - student.feedback_count),
        "visits": [feedback.to_dict() for feedback in visits],
    }

"""
Ranking Transaction — one-time top-three ranking of a student's own school stalls.

Everything happens in one transaction: claim the student's one-time flag with a
conditional UPDATE, lock the three stalls, validate them, insert the rankings
and bump the vote tallies. Any failure rolls the whole thing back, so a
partially counted ballot is never visible.
"""

from dataclasses import dataclass
import uuid

from flask import current_app

from stallpass.clock import as_utc, utcnow
from stallpass.errors import (
    AlreadySubmitted,
    CrossSchoolStall,
    DuplicateStall,
    InvalidRankSet,
    NotEnoughStalls,
    ParticipantNotFound,
    RankingNotSubmitted,
    StallNotFound,
)
from stallpass.extensions import db
from stallpass.models import Ranking, Stall, Student
from stallpass.services.directory import as_uuid, get_student

SCHOOL_RANKING_CATEGORY = "CATEGORY_2"
DEFAULT_RANK_WEIGHTS = (5, 3, 1)
VALID_RANKS = (1, 2, 3)


@dataclass(frozen=True)
class RankEntry:
    stall_id: object
    rank: int


def rank_weights():
    weights = current_app.config.get("RANK_WEIGHTS", DEFAULT_RANK_WEIGHTS)
    return dict(zip(VALID_RANKS, weights))


def normalise_entries(entries):
    """Shape checks that need no database: three entries, ranks {1,2,3}, distinct stalls."""
    if not isinstance(entries, (list, tuple)) or len(entries) != len(VALID_RANKS):
        raise InvalidRankSet("Must provide exactly 3 stall rankings")

    parsed = []
    for entry in entries:
        if isinstance(entry, RankEntry):
            parsed.append(entry)
            continue
        if isinstance(entry, dict):
            stall_id, rank = entry.get("stall_id"), entry.get("rank")
        else:
            try:
                stall_id, rank = entry
            except (TypeError, ValueError):
                raise InvalidRankSet("Each ranking needs a stall_id and a rank") from None
        parsed.append(RankEntry(stall_id=as_uuid(stall_id) or stall_id, rank=rank))

    ranks = [entry.rank for entry in parsed]
    if any(isinstance(rank, bool) or not isinstance(rank, int) for rank in ranks):
        raise InvalidRankSet()
    if sorted(ranks) != list(VALID_RANKS):
        raise InvalidRankSet()

    if len({str(entry.stall_id) for entry in parsed}) != len(parsed):
        raise DuplicateStall()

    return parsed


def _weighted_score_after_vote(rank, weights):
    # SET expressions see pre-update values, so add the new vote explicitly
    return sum(
        (getattr(Stall, f"rank_{r}_votes") + (1 if r == rank else 0)) * weights[r]
        for r in VALID_RANKS
    )


def _claim_ranking_flag(student_key):
    claimed = db.session.execute(
        db.update(Student)
        .where(Student.student_id == student_key, Student.has_completed_ranking.is_(False))
        .values(has_completed_ranking=True, selected_category=SCHOOL_RANKING_CATEGORY)
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount == 1:
        return
    exists = db.session.execute(
        db.select(Student.student_id).where(Student.student_id == student_key)
    ).scalar_one_or_none()
    if exists is None:
        raise ParticipantNotFound()
    raise AlreadySubmitted()


def _lock_stalls(stall_ids):
    stmt = (
        db.select(Stall)
        .where(Stall.stall_id.in_(stall_ids))
        .order_by(Stall.stall_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return db.session.execute(stmt).scalars().all()


def submit_ranking(student_id, entries, now=None):
    """
    Commit a student's one-time ranking of exactly three stalls.
    Returns the committed Ranking rows ordered by rank.
    """
    entries = normalise_entries(entries)
    now = as_utc(now or utcnow())
    weights = rank_weights()
    student_key = as_uuid(student_id)
    if student_key is None:
        raise ParticipantNotFound()

    try:
        _claim_ranking_flag(student_key)
        school_id = db.session.execute(
            db.select(Student.school_id).where(Student.student_id == student_key)
        ).scalar_one()

        if not all(isinstance(entry.stall_id, uuid.UUID) for entry in entries):
            raise StallNotFound("One or more stalls not found")

        stalls = {stall.stall_id: stall for stall in _lock_stalls(sorted(e.stall_id for e in entries))}
        missing = [str(e.stall_id) for e in entries if e.stall_id not in stalls or not stalls[e.stall_id].is_active]
        if missing:
            raise StallNotFound("One or more stalls not found", stall_ids=missing)

        foreign = [stall for stall in stalls.values() if stall.school_id != school_id]
        if foreign:
            names = ", ".join(sorted(stall.stall_name for stall in foreign))
            raise CrossSchoolStall(f"You can only rank stalls from YOUR school. Invalid: {names}")

        for entry in entries:
            db.session.add(Ranking(
                student_id=student_key,
                stall_id=entry.stall_id,
                rank=entry.rank,
                submitted_at=now,
            ))
            votes = f"rank_{entry.rank}_votes"
            db.session.execute(
                db.update(Stall)
                .where(Stall.stall_id == entry.stall_id)
                .values({
                    votes: getattr(Stall, votes) + 1,
                    "weighted_score": _weighted_score_after_vote(entry.rank, weights),
                })
                .execution_options(synchronize_session=False)
            )

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    return submitted_ranking(student_key)


def submitted_ranking(student_id):
    rankings = (
        Ranking.query.filter_by(student_id=as_uuid(student_id))
        .order_by(Ranking.rank.asc())
        .all()
    )
    if not rankings:
        raise RankingNotSubmitted()
    return rankings


def school_stalls_for_ranking(student_id):
    """Active stalls of the student's own school, for the one-time ballot."""
    student = get_student(student_id)
    if student.has_completed_ranking:
        raise AlreadySubmitted("You have already submitted your school stall rankings")

    stalls = (
        Stall.query.filter_by(school_id=student.school_id, is_active=True)
        .order_by(Stall.stall_number.asc())
        .all()
    )
    if len(stalls) < len(VALID_RANKS):
        raise NotEnoughStalls(f"Your school has only {len(stalls)} stalls. Minimum 3 required.")
    return student, stalls

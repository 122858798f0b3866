import threading
import unittest
import uuid

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
from stallpass.services import ranking_transaction
from tests.base import BASE_TIME, StallPassTestCase


class RankingTestCase(StallPassTestCase):

    def ballot(self, *ranks, stall_ids=None):
        stall_ids = stall_ids or self.stall_ids
        return [{"stall_id": str(stall_id), "rank": rank} for stall_id, rank in zip(stall_ids, ranks)]

    def tallies(self, stall_id):
        stall = self.fresh(Stall, stall_id)
        return (stall.rank_1_votes, stall.rank_2_votes, stall.rank_3_votes, stall.weighted_score)

    def assert_nothing_counted(self):
        for stall_id in self.stall_ids + [self.foreign_stall_id]:
            self.assertEqual(self.tallies(stall_id), (0, 0, 0, 0))
        self.assertEqual(Ranking.query.count(), 0)
        self.assertFalse(self.fresh(Student, self.student_id).has_completed_ranking)


class TestSubmitRanking(RankingTestCase):

    def test_ranking_updates_tallies_and_sets_flag(self):
        rankings = ranking_transaction.submit_ranking(self.student_id, self.ballot(1, 2, 3), now=BASE_TIME)

        self.assertEqual([r.rank for r in rankings], [1, 2, 3])
        self.assertEqual([r.stall_id for r in rankings], self.stall_ids)
        self.assertEqual(self.tallies(self.stall_ids[0]), (1, 0, 0, 5))
        self.assertEqual(self.tallies(self.stall_ids[1]), (0, 1, 0, 3))
        self.assertEqual(self.tallies(self.stall_ids[2]), (0, 0, 1, 1))

        student = self.fresh(Student, self.student_id)
        self.assertTrue(student.has_completed_ranking)
        self.assertEqual(student.selected_category, "CATEGORY_2")

    def test_second_submission_is_rejected_without_counting(self):
        ranking_transaction.submit_ranking(self.student_id, self.ballot(1, 2, 3), now=BASE_TIME)

        with self.assertRaises(AlreadySubmitted):
            ranking_transaction.submit_ranking(self.student_id, self.ballot(3, 2, 1), now=BASE_TIME)

        self.assertEqual(self.tallies(self.stall_ids[0]), (1, 0, 0, 5))
        self.assertEqual(self.tallies(self.stall_ids[2]), (0, 0, 1, 1))
        self.assertEqual(Ranking.query.count(), 3)

    def test_weighted_score_accumulates_across_students(self):
        other = self.make_student("REG-2024-0002", self.school_a)
        db.session.commit()

        ranking_transaction.submit_ranking(self.student_id, self.ballot(1, 2, 3), now=BASE_TIME)
        ranking_transaction.submit_ranking(other.student_id, self.ballot(2, 1, 3), now=BASE_TIME)

        self.assertEqual(self.tallies(self.stall_ids[0]), (1, 1, 0, 8))
        self.assertEqual(self.tallies(self.stall_ids[1]), (1, 1, 0, 8))
        self.assertEqual(self.tallies(self.stall_ids[2]), (0, 0, 2, 2))

    def test_accepts_pairs_in_any_order(self):
        entries = [(self.stall_ids[2], 3), (self.stall_ids[0], 1), (self.stall_ids[1], 2)]
        rankings = ranking_transaction.submit_ranking(self.student_id, entries, now=BASE_TIME)
        self.assertEqual([r.stall_id for r in rankings], self.stall_ids)

    def test_rank_set_must_be_exactly_one_two_three(self):
        bad_ballots = [
            self.ballot(1, 1, 2),
            self.ballot(1, 2, 4),
            self.ballot(1, 2),
            self.ballot(1, 2, 3) + [{"stall_id": str(self.foreign_stall_id), "rank": 3}],
            self.ballot("1", "2", "3"),
            self.ballot(True, 2, 3),
            None,
            "1,2,3",
            [1, 2, 3],
        ]
        for entries in bad_ballots:
            with self.assertRaises(InvalidRankSet, msg=repr(entries)):
                ranking_transaction.submit_ranking(self.student_id, entries, now=BASE_TIME)
        self.assert_nothing_counted()

    def test_stalls_must_be_distinct(self):
        repeated = [self.stall_ids[0], self.stall_ids[0], self.stall_ids[1]]
        with self.assertRaises(DuplicateStall):
            ranking_transaction.submit_ranking(
                self.student_id, self.ballot(1, 2, 3, stall_ids=repeated), now=BASE_TIME
            )
        self.assert_nothing_counted()

    def test_stall_from_other_school_aborts_everything(self):
        mixed = [self.stall_ids[0], self.stall_ids[1], self.foreign_stall_id]
        with self.assertRaises(CrossSchoolStall) as ctx:
            ranking_transaction.submit_ranking(
                self.student_id, self.ballot(1, 2, 3, stall_ids=mixed), now=BASE_TIME
            )
        self.assertIn("Startup Pitch", ctx.exception.message)
        self.assert_nothing_counted()

    def test_missing_or_inactive_stall_aborts_everything(self):
        missing = [self.stall_ids[0], self.stall_ids[1], uuid.uuid4()]
        with self.assertRaises(StallNotFound):
            ranking_transaction.submit_ranking(
                self.student_id, self.ballot(1, 2, 3, stall_ids=missing), now=BASE_TIME
            )

        unparseable = [self.stall_ids[0], self.stall_ids[1], "S-103"]
        with self.assertRaises(StallNotFound):
            ranking_transaction.submit_ranking(
                self.student_id, self.ballot(1, 2, 3, stall_ids=unparseable), now=BASE_TIME
            )

        db.session.execute(db.update(Stall).where(Stall.stall_id == self.stall_ids[2]).values(is_active=False))
        db.session.commit()
        with self.assertRaises(StallNotFound):
            ranking_transaction.submit_ranking(self.student_id, self.ballot(1, 2, 3), now=BASE_TIME)

        self.assert_nothing_counted()

    def test_unknown_student(self):
        with self.assertRaises(ParticipantNotFound):
            ranking_transaction.submit_ranking(uuid.uuid4(), self.ballot(1, 2, 3), now=BASE_TIME)
        self.assert_nothing_counted()


class TestRankWeights(RankingTestCase):
    config = {"RANK_WEIGHTS": (10, 4, 2)}

    def test_configured_weights_drive_weighted_score(self):
        ranking_transaction.submit_ranking(self.student_id, self.ballot(1, 2, 3), now=BASE_TIME)
        self.assertEqual(self.tallies(self.stall_ids[0])[3], 10)
        self.assertEqual(self.tallies(self.stall_ids[1])[3], 4)
        self.assertEqual(self.tallies(self.stall_ids[2])[3], 2)


class TestConcurrentRanking(RankingTestCase):

    def test_double_submit_counts_once(self):
        outcomes = []
        barrier = threading.Barrier(2, timeout=5)
        entries = self.ballot(1, 2, 3)

        def submit():
            with self.app.app_context():
                barrier.wait()
                try:
                    ranking_transaction.submit_ranking(self.student_id, entries, now=BASE_TIME)
                    outcomes.append("OK")
                except AlreadySubmitted:
                    outcomes.append("ALREADY")

        threads = [threading.Thread(target=submit) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=15)

        self.assertEqual(sorted(outcomes), ["ALREADY", "OK"])
        self.assertEqual(self.tallies(self.stall_ids[0]), (1, 0, 0, 5))
        self.assertEqual(Ranking.query.count(), 3)


class TestRankingViews(RankingTestCase):

    def test_school_stalls_for_ranking(self):
        student, stalls = ranking_transaction.school_stalls_for_ranking(self.student_id)
        self.assertEqual(student.registration_no, "REG-2024-0001")
        self.assertEqual([s.stall_number for s in stalls], ["S-101", "S-102", "S-103"])

        ranking_transaction.submit_ranking(self.student_id, self.ballot(1, 2, 3), now=BASE_TIME)
        with self.assertRaises(AlreadySubmitted):
            ranking_transaction.school_stalls_for_ranking(self.student_id)

    def test_school_needs_three_active_stalls(self):
        manager = self.make_student("REG-2024-0100", self.school_b)
        db.session.commit()
        with self.assertRaises(NotEnoughStalls):
            ranking_transaction.school_stalls_for_ranking(manager.student_id)

    def test_submitted_ranking(self):
        with self.assertRaises(RankingNotSubmitted):
            ranking_transaction.submitted_ranking(self.student_id)

        ranking_transaction.submit_ranking(self.student_id, self.ballot(3, 1, 2), now=BASE_TIME)
        rankings = ranking_transaction.submitted_ranking(self.student_id)
        self.assertEqual([r.stall.stall_number for r in rankings], ["S-102", "S-103", "S-101"])


if __name__ == '__main__':
    unittest.main()

import os
import tempfile
import unittest
import uuid
from datetime import datetime, timezone

import bcrypt

from stallpass.app import create_app
from stallpass.extensions import db, token_codec
from stallpass.models import School, Stall, Student, Volunteer
from stallpass.models.student import INSIDE, OUTSIDE

PASSWORD = "password123"
# Low cost factor keeps fixture setup fast; checkpw accepts any cost
PASSWORD_HASH = bcrypt.hashpw(PASSWORD.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")

# 09:00:00 UTC sits exactly on a 30-second rotation boundary
BASE_TIME = datetime(2026, 3, 14, 9, 0, 0, tzinfo=timezone.utc)


class StallPassTestCase(unittest.TestCase):
    """App on a throwaway SQLite file (threads need a real file, not :memory:)."""

    config = {}

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "stallpass.db")
        test_config = {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"check_same_thread": False}},
            "JWT_SECRET_KEY": "test-jwt-secret-0123456789abcdef0123",
            "QR_TOKEN_SECRET": "test-qr-secret-0123456789abcdef01234",
            "QR_ROTATION_SECONDS": 30,
            "QR_GRACE_WINDOWS": 1,
            "FEEDBACK_QUOTA": 200,
            "RANK_WEIGHTS": (5, 3, 1),
            "SCAN_COOLDOWN_SECONDS": 0,
        }
        test_config.update(self.config)
        self.app = create_app(test_config)
        self.ctx = self.app.app_context()
        self.ctx.push()
        db.create_all()
        self.client = self.app.test_client()

        self.school_a = self.make_school("School of Computing Sciences and Engineering")
        self.school_b = self.make_school("School of Management")
        self.volunteer = self.make_volunteer("gate1@example.com")
        self.student = self.make_student("REG-2024-0001", self.school_a)
        self.stalls = [
            self.make_stall("S-101", "Robotics Lab", self.school_a),
            self.make_stall("S-102", "Drone Racing", self.school_a),
            self.make_stall("S-103", "Retro Games", self.school_a),
        ]
        self.foreign_stall = self.make_stall("M-201", "Startup Pitch", self.school_b)
        db.session.commit()

        self.student_id = self.student.student_id
        self.volunteer_id = self.volunteer.volunteer_id
        self.stall_ids = [stall.stall_id for stall in self.stalls]
        self.foreign_stall_id = self.foreign_stall.stall_id

    def tearDown(self):
        db.session.remove()
        db.drop_all()
        db.engine.dispose()
        self.ctx.pop()
        self.tmpdir.cleanup()

    # --- fixtures --------------------------------------------------------

    def make_school(self, name):
        school = School(school_id=uuid.uuid4(), school_name=name)
        db.session.add(school)
        return school

    def make_volunteer(self, email):
        volunteer = Volunteer(
            volunteer_id=uuid.uuid4(),
            email=email,
            full_name="Gate Volunteer",
            password_hash=PASSWORD_HASH,
        )
        db.session.add(volunteer)
        return volunteer

    def make_student(self, registration_no, school, inside=False):
        student = Student(
            student_id=uuid.uuid4(),
            registration_no=registration_no,
            full_name=f"Student {registration_no}",
            email=f"{registration_no.lower()}@example.com",
            password_hash=PASSWORD_HASH,
            school_id=school.school_id,
            presence=INSIDE if inside else OUTSIDE,
        )
        db.session.add(student)
        return student

    def make_stall(self, number, name, school, active=True):
        stall = Stall(
            stall_id=uuid.uuid4(),
            stall_number=number,
            stall_name=name,
            school_id=school.school_id,
            qr_code_token=token_codec.generate_stall_token(number, now=BASE_TIME),
            is_active=active,
        )
        db.session.add(stall)
        return stall

    # --- helpers ---------------------------------------------------------

    def presence_of(self, student_id):
        return db.session.execute(
            db.select(Student.presence).where(Student.student_id == student_id)
        ).scalar_one()

    def fresh(self, model, entity_id):
        db.session.expire_all()
        return db.session.get(model, entity_id)

    def set_inside(self, student_id, inside=True):
        db.session.execute(
            db.update(Student)
            .where(Student.student_id == student_id)
            .values(presence=INSIDE if inside else OUTSIDE)
        )
        db.session.commit()

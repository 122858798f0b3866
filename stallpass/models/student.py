"""
Student Model
presence: OUTSIDE | INSIDE, flipped only by the attendance ledger.
"""

import uuid
import bcrypt
from stallpass.extensions import db

OUTSIDE = "OUTSIDE"
INSIDE = "INSIDE"


class Student(db.Model):
    __tablename__ = 'students'

    student_id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    registration_no = db.Column(db.String(50), unique=True, nullable=False)
    full_name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True)
    password_hash = db.Column(db.Text, nullable=False)
    school_id = db.Column(db.Uuid, db.ForeignKey('schools.school_id'), nullable=False)
    presence = db.Column(
        db.Enum(OUTSIDE, INSIDE, name="presence_state"),
        nullable=False,
        default=OUTSIDE
    )
    feedback_count = db.Column(db.Integer, nullable=False, default=0)
    has_completed_ranking = db.Column(db.Boolean, nullable=False, default=False)
    selected_category = db.Column(db.String(30))
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, server_default=db.func.now(), onupdate=db.func.now())

    school = db.relationship('School', backref=db.backref('students', lazy=True))

    @property
    def is_inside_event(self):
        return self.presence == INSIDE

    def set_password(self, password):
        self.password_hash = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')

    def check_password(self, password):
        return bcrypt.checkpw(password.encode('utf-8'), self.password_hash.encode('utf-8'))

    def to_dict(self):
        return {
            'student_id': str(self.student_id),
            'registration_no': self.registration_no,
            'full_name': self.full_name,
            'email': self.email,
            'school_name': self.school.school_name if self.school else None,
            'is_inside_event': self.is_inside_event,
            'feedback_count': self.feedback_count,
            'has_completed_ranking': self.has_completed_ranking,
        }

import uuid
from stallpass.extensions import db


class Feedback(db.Model):
    __tablename__ = 'feedbacks'
    __table_args__ = (
        db.UniqueConstraint('student_id', 'stall_id', name='uq_feedback_student_stall'),
        db.CheckConstraint('rating BETWEEN 1 AND 5', name='chk_feedback_rating'),
    )

    feedback_id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    student_id = db.Column(db.Uuid, db.ForeignKey('students.student_id'), nullable=False, index=True)
    stall_id = db.Column(db.Uuid, db.ForeignKey('stalls.stall_id'), nullable=False, index=True)
    rating = db.Column(db.Integer, nullable=False)
    comment = db.Column(db.Text)
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=False)

    stall = db.relationship('Stall')

    def to_dict(self):
        return {
            'feedback_id': str(self.feedback_id),
            'stall_id': str(self.stall_id),
            'stall_number': self.stall.stall_number if self.stall else None,
            'stall_name': self.stall.stall_name if self.stall else None,
            'rating': self.rating,
            'comment': self.comment,
            'submitted_at': self.submitted_at.isoformat(),
        }

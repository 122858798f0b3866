import uuid
from stallpass.extensions import db


class Ranking(db.Model):
    __tablename__ = 'rankings'
    __table_args__ = (
        db.UniqueConstraint('student_id', 'rank', name='uq_ranking_student_rank'),
        db.UniqueConstraint('student_id', 'stall_id', name='uq_ranking_student_stall'),
        db.CheckConstraint('rank BETWEEN 1 AND 3', name='chk_ranking_rank'),
    )

    ranking_id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    student_id = db.Column(db.Uuid, db.ForeignKey('students.student_id'), nullable=False, index=True)
    stall_id = db.Column(db.Uuid, db.ForeignKey('stalls.stall_id'), nullable=False)
    rank = db.Column(db.Integer, nullable=False)
    submitted_at = db.Column(db.DateTime(timezone=True), nullable=False)

    stall = db.relationship('Stall')

    def to_dict(self):
        return {
            'rank': self.rank,
            'stall_id': str(self.stall_id),
            'stall_number': self.stall.stall_number if self.stall else None,
            'stall_name': self.stall.stall_name if self.stall else None,
            'submitted_at': self.submitted_at.isoformat(),
        }

"""
Stall Model
Vote tallies are only ever incremented inside a ranking transaction;
weighted_score is recomputed from them in the same UPDATE.
"""

import uuid
from stallpass.extensions import db


class Stall(db.Model):
    __tablename__ = 'stalls'

    stall_id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    stall_number = db.Column(db.String(20), unique=True, nullable=False)
    stall_name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    location = db.Column(db.String(255))
    school_id = db.Column(db.Uuid, db.ForeignKey('schools.school_id'), nullable=False)
    qr_code_token = db.Column(db.String(100), unique=True, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    total_feedback_count = db.Column(db.Integer, nullable=False, default=0)
    rank_1_votes = db.Column(db.Integer, nullable=False, default=0)
    rank_2_votes = db.Column(db.Integer, nullable=False, default=0)
    rank_3_votes = db.Column(db.Integer, nullable=False, default=0)
    weighted_score = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, server_default=db.func.now(), onupdate=db.func.now())

    school = db.relationship('School', backref=db.backref('stalls', lazy=True))

    def to_dict(self):
        return {
            'stall_id': str(self.stall_id),
            'stall_number': self.stall_number,
            'stall_name': self.stall_name,
            'description': self.description,
            'location': self.location,
            'school_name': self.school.school_name if self.school else None,
        }

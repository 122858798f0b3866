"""
CheckInOut Model — one row per gate scan, never updated.
scan_type: ENTRY | EXIT
"""

import uuid
from stallpass.extensions import db

ENTRY = "ENTRY"
EXIT = "EXIT"


class CheckInOut(db.Model):
    __tablename__ = 'check_in_outs'

    record_id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    student_id = db.Column(db.Uuid, db.ForeignKey('students.student_id'), nullable=False, index=True)
    volunteer_id = db.Column(db.Uuid, db.ForeignKey('volunteers.volunteer_id'), nullable=False, index=True)
    scan_type = db.Column(db.Enum(ENTRY, EXIT, name="scan_type"), nullable=False)
    scanned_at = db.Column(db.DateTime(timezone=True), nullable=False)
    duration_seconds = db.Column(db.Integer, nullable=True)  # EXIT only

    student = db.relationship('Student')
    volunteer = db.relationship('Volunteer')

    def to_dict(self):
        return {
            'record_id': str(self.record_id),
            'student_id': str(self.student_id),
            'volunteer_id': str(self.volunteer_id),
            'scan_type': self.scan_type,
            'scanned_at': self.scanned_at.isoformat(),
            'duration_seconds': self.duration_seconds,
        }

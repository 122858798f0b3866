import uuid
from stallpass.extensions import db


class School(db.Model):
    __tablename__ = 'schools'

    school_id = db.Column(db.Uuid, primary_key=True, default=uuid.uuid4)
    school_name = db.Column(db.String(255), unique=True, nullable=False)
    description = db.Column(db.Text)
    created_at = db.Column(db.DateTime, server_default=db.func.now())

    def to_dict(self):
        return {
            'school_id': str(self.school_id),
            'school_name': self.school_name,
            'description': self.description,
        }

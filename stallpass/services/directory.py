"""
Identity Directory — lookups by natural key and the row-lock primitive.
Students are found by registration number, stalls by stall number or by their
printed QR token; storage ids never travel inside tokens.
"""

import uuid

from stallpass.errors import ParticipantNotFound, StallNotFound, UnknownToken
from stallpass.extensions import db, token_codec
from stallpass.models import Stall, Student


def as_uuid(value):
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None


def find_student_by_registration_no(registration_no):
    student = Student.query.filter_by(registration_no=registration_no).first()
    if not student:
        raise ParticipantNotFound()
    return student


def find_stall_by_number(stall_number):
    stall = Stall.query.filter_by(stall_number=stall_number).first()
    if not stall:
        raise StallNotFound()
    return stall


def get_student(student_id):
    key = as_uuid(student_id)
    student = db.session.get(Student, key) if key else None
    if not student:
        raise ParticipantNotFound()
    return student


def get_stall(stall_id):
    key = as_uuid(stall_id)
    stall = db.session.get(Stall, key) if key else None
    if not stall:
        raise StallNotFound()
    return stall


def verify_stall_token(raw_token):
    """
    Stall tokens are verified by existence: the token must parse, be on file
    and belong to an active stall whose number matches the embedded one.
    """
    parsed = token_codec.parse_stall_token(raw_token)
    stall = Stall.query.filter_by(qr_code_token=parsed.raw).first()
    if not stall or not stall.is_active or stall.stall_number != parsed.subject_id:
        raise UnknownToken()
    return stall


def lock_row(model, entity_id):
    """
    SELECT ... FOR UPDATE on one row, refreshing any stale copy already in the
    session. Returns None when the row does not exist.
    """
    key = as_uuid(entity_id)
    if key is None:
        return None
    pk = model.__mapper__.primary_key[0]
    stmt = (
        db.select(model)
        .where(pk == key)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return db.session.execute(stmt).scalar_one_or_none()


def with_lock(model, entity_id, fn, not_found=ParticipantNotFound):
    """
    Run fn(entity) with the entity's row locked. Everything fn writes is
    committed together, or rolled back if anything raises.
    """
    try:
        entity = lock_row(model, entity_id)
        if entity is None:
            raise not_found()
        result = fn(entity)
        db.session.commit()
        return result
    except Exception:
        db.session.rollback()
        raise

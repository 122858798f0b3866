"""
Volunteer Routes
Gate staff scan student QR codes; entry vs exit is decided by the ledger.
"""

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import get_jwt_identity

from stallpass.errors import MalformedToken
from stallpass.extensions import token_codec
from stallpass.routes.auth import ROLE_VOLUNTEER, role_required, validation_error
from stallpass.services import attendance_ledger
from stallpass.services.directory import find_student_by_registration_no
from stallpass.tokens import StallToken

volunteer_bp = Blueprint('volunteer', __name__)


@volunteer_bp.route('/scan/student', methods=['POST'])
@role_required(ROLE_VOLUNTEER)
def scan_student():
    """
    Scan a student's rotating QR code (auto-detects entry/exit)
    ---
    tags:
      - Volunteer
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - qr_code_token
          properties:
            qr_code_token:
              type: string
    responses:
      200:
        description: Scan recorded; direction is ENTRY or EXIT
      400:
        description: Expired, tampered or malformed token
      404:
        description: Student not found
      409:
        description: Student was scanned concurrently
    """
    data = request.get_json(silent=True) or {}
    if not data.get('qr_code_token'):
        return validation_error('QR code token is required')

    token = token_codec.classify(data['qr_code_token'])
    if isinstance(token, StallToken):
        raise MalformedToken('This is a stall QR code, scan the student QR code instead')

    verified = token_codec.verify_participant_token(token.raw)
    student = find_student_by_registration_no(verified.subject_id)
    result = attendance_ledger.process_scan(student.student_id, get_jwt_identity())

    current_app.logger.info(
        "%s recorded for student %s by volunteer %s",
        result.direction, result.student.registration_no, get_jwt_identity(),
    )
    return jsonify({
        'success': True,
        'message': f"{result.direction} recorded",
        'data': {
            'direction': result.direction,
            'student': result.student.to_dict(),
            'record': result.record.to_dict(),
        },
    }), 200


@volunteer_bp.route('/history', methods=['GET'])
@role_required(ROLE_VOLUNTEER)
def history():
    limit = request.args.get('limit', 50, type=int)
    records = attendance_ledger.history_for_volunteer(get_jwt_identity(), limit=limit)
    return jsonify({'success': True, 'data': [r.to_dict() for r in records]}), 200

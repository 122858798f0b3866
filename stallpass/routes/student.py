"""
Student Routes
QR identity, stall feedback (self-service inside the event) and the one-time
school stall ranking.
"""

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import get_jwt_identity

from stallpass.extensions import token_codec
from stallpass.routes.auth import ROLE_STUDENT, role_required, validation_error
from stallpass.services import attendance_ledger, feedback_gate, ranking_transaction
from stallpass.services.directory import get_student

student_bp = Blueprint('student', __name__)


@student_bp.route('/profile', methods=['GET'])
@role_required(ROLE_STUDENT)
def profile():
    student = get_student(get_jwt_identity())
    return jsonify({'success': True, 'data': student.to_dict()}), 200


@student_bp.route('/qr-code', methods=['GET'])
@role_required(ROLE_STUDENT)
def qr_code():
    """
    Current rotating QR token for the logged-in student
    ---
    tags:
      - Student
    security:
      - Bearer: []
    responses:
      200:
        description: Token plus rotation metadata; re-fetch after expires_in_seconds
      404:
        description: Student not found
    """
    student = get_student(get_jwt_identity())
    return jsonify({
        'success': True,
        'data': {
            'qr_code_token': token_codec.generate_participant_token(student.registration_no),
            'registration_no': student.registration_no,
            'rotation_info': token_codec.rotation_info(),
        },
    }), 200


@student_bp.route('/check-in-history', methods=['GET'])
@role_required(ROLE_STUDENT)
def check_in_history():
    records = attendance_ledger.history_for_student(get_jwt_identity())
    return jsonify({'success': True, 'data': [r.to_dict() for r in records]}), 200


@student_bp.route('/scan-stall', methods=['POST'])
@role_required(ROLE_STUDENT)
def scan_stall():
    """
    Scan a printed stall QR code
    ---
    tags:
      - Student
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - stall_qr_token
          properties:
            stall_qr_token:
              type: string
    responses:
      200:
        description: Stall details and whether it was already reviewed
      403:
        description: Student is not checked in
      404:
        description: Unknown or inactive stall
    """
    data = request.get_json(silent=True) or {}
    if not data.get('stall_qr_token'):
        return validation_error('Stall QR code is required')

    stall, existing = feedback_gate.scan_stall(get_jwt_identity(), data['stall_qr_token'])
    return jsonify({
        'success': True,
        'message': 'Stall scanned successfully',
        'data': {
            'stall': stall.to_dict(),
            'already_reviewed': existing is not None,
            'existing_feedback': existing.to_dict() if existing else None,
        },
    }), 200


@student_bp.route('/submit-feedback', methods=['POST'])
@role_required(ROLE_STUDENT)
def submit_feedback():
    """
    Rate a stall (1-5) once
    ---
    tags:
      - Student
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - stall_id
            - rating
          properties:
            stall_id:
              type: string
            rating:
              type: integer
            comment:
              type: string
    responses:
      201:
        description: Feedback recorded
      400:
        description: Rating out of range
      403:
        description: Not checked in, or feedback limit reached
      409:
        description: Stall already reviewed
    """
    data = request.get_json(silent=True) or {}
    if not data.get('stall_id') or data.get('rating') is None:
        return validation_error('Stall ID and rating are required')

    student_id = get_jwt_identity()
    feedback = feedback_gate.submit_feedback(
        student_id,
        data['stall_id'],
        data['rating'],
        comment=data.get('comment'),
    )
    student = get_student(student_id)
    current_app.logger.info("Feedback %s from student %s", feedback.feedback_id, student.registration_no)

    return jsonify({
        'success': True,
        'message': 'Feedback submitted successfully',
        'data': {
            'feedback': feedback.to_dict(),
            'total_feedbacks_given': student.feedback_count,
            'remaining_feedbacks': max(0, feedback_gate.feedback_quota() - student.feedback_count),
        },
    }), 201


@student_bp.route('/my-visits', methods=['GET'])
@role_required(ROLE_STUDENT)
def my_visits():
    return jsonify({'success': True, 'data': feedback_gate.visits_for_student(get_jwt_identity())}), 200


@student_bp.route('/my-school-stalls', methods=['GET'])
@role_required(ROLE_STUDENT)
def my_school_stalls():
    student, stalls = ranking_transaction.school_stalls_for_ranking(get_jwt_identity())
    return jsonify({
        'success': True,
        'data': {
            'student_info': student.to_dict(),
            'stalls': [stall.to_dict() for stall in stalls],
            'total_stalls': len(stalls),
            'instructions': (
                'Select top 3 stalls from YOUR SCHOOL ONLY. '
                'Ranks: 1 (best), 2 (second), 3 (third). ONE-TIME submission.'
            ),
        },
    }), 200


@student_bp.route('/submit-school-ranking', methods=['POST'])
@role_required(ROLE_STUDENT)
def submit_school_ranking():
    """
    Submit the one-time top-3 ranking of your own school's stalls
    ---
    tags:
      - Student
    security:
      - Bearer: []
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - rankings
          properties:
            rankings:
              type: array
              items:
                type: object
                properties:
                  stall_id:
                    type: string
                  rank:
                    type: integer
    responses:
      201:
        description: Rankings recorded
      400:
        description: Not exactly ranks 1, 2, 3 or repeated stall
      403:
        description: Stall from another school
      404:
        description: Stall not found
      409:
        description: Already submitted
    """
    data = request.get_json(silent=True) or {}
    rankings = ranking_transaction.submit_ranking(get_jwt_identity(), data.get('rankings'))
    current_app.logger.info("Ranking submitted by student %s", get_jwt_identity())

    return jsonify({
        'success': True,
        'message': 'School rankings submitted',
        'data': {
            'submitted_rankings': [r.to_dict() for r in rankings],
            'note': 'Your rankings are recorded and cannot be changed.',
        },
    }), 201


@student_bp.route('/my-submitted-rank', methods=['GET'])
@role_required(ROLE_STUDENT)
def my_submitted_rank():
    rankings = ranking_transaction.submitted_ranking(get_jwt_identity())
    return jsonify({
        'success': True,
        'data': {
            'rankings': [r.to_dict() for r in rankings],
            'submitted_at': rankings[0].submitted_at.isoformat(),
            'note': 'This ranking was ONE-TIME and cannot be changed.',
        },
    }), 200

from functools import wraps
import re

from flask import Blueprint, current_app, request, jsonify
from flask_jwt_extended import create_access_token, get_jwt, get_jwt_identity, jwt_required
from sqlalchemy.exc import IntegrityError

from stallpass.extensions import BLOCKLIST, db
from stallpass.models import School, Student, Volunteer
from stallpass.services.directory import as_uuid
import datetime

auth_bp = Blueprint('auth', __name__)

ROLE_STUDENT = 'student'
ROLE_VOLUNTEER = 'volunteer'

EMAIL_REGEX = r'^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$'


def issue_access_token(identity, role):
    return create_access_token(
        identity=str(identity),
        additional_claims={'role': role},
        expires_delta=datetime.timedelta(hours=24),
    )


def role_required(*roles):
    """jwt_required plus a check on the token's role claim."""
    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            if get_jwt().get('role') not in roles:
                return jsonify({
                    'success': False,
                    'error_code': 'FORBIDDEN',
                    'message': f"Access denied. Required roles: {', '.join(roles)}",
                }), 403
            return fn(*args, **kwargs)
        return wrapper
    return decorator


def validation_error(message):
    return jsonify({'success': False, 'error_code': 'VALIDATION_ERROR', 'message': message}), 400


@auth_bp.route('/api/student/register', methods=['POST'])
def register_student():
    """
    Register a new student
    ---
    tags:
      - Auth
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required:
            - full_name
            - registration_no
            - password
            - school_id
          properties:
            full_name:
              type: string
            registration_no:
              type: string
            email:
              type: string
            password:
              type: string
            school_id:
              type: string
    responses:
      201:
        description: Student registered
      400:
        description: Invalid input
      409:
        description: Registration number or email already exists
    """
    data = request.get_json(silent=True) or {}
    required = ['full_name', 'registration_no', 'password', 'school_id']
    missing = [f for f in required if not data.get(f)]
    if missing:
        return validation_error(f"Missing fields: {', '.join(missing)}")

    if data.get('email') and not re.match(EMAIL_REGEX, data['email']):
        return validation_error('Invalid email format')

    if len(data['password']) < 8:
        return validation_error('Password must be at least 8 characters')

    school_key = as_uuid(data['school_id'])
    school = db.session.get(School, school_key) if school_key else None
    if not school:
        return validation_error('Unknown school')

    if Student.query.filter_by(registration_no=data['registration_no']).first():
        return jsonify({'success': False, 'error_code': 'CONFLICT', 'message': 'Registration number already exists'}), 409

    if data.get('email') and Student.query.filter_by(email=data['email']).first():
        return jsonify({'success': False, 'error_code': 'CONFLICT', 'message': 'Email already exists'}), 409

    student = Student(
        full_name=data['full_name'],
        registration_no=data['registration_no'],
        email=data.get('email'),
        school_id=school.school_id,
    )
    student.set_password(data['password'])

    try:
        db.session.add(student)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'success': False, 'error_code': 'CONFLICT', 'message': 'Student already exists'}), 409

    current_app.logger.info("Registered student %s", student.registration_no)
    return jsonify({
        'success': True,
        'message': 'Registration successful',
        'data': {
            'token': issue_access_token(student.student_id, ROLE_STUDENT),
            'student': student.to_dict(),
        },
    }), 201


@auth_bp.route('/api/student/login', methods=['POST'])
def login_student():
    """
    Authenticate a student by email or registration number
    ---
    tags:
      - Auth
    responses:
      200:
        description: Login successful
      401:
        description: Invalid credentials
    """
    data = request.get_json(silent=True) or {}
    email = data.get('email')
    registration_no = data.get('registration_no')
    if (not email and not registration_no) or not data.get('password'):
        return validation_error('Email or registration number, and password are required')

    if email:
        student = Student.query.filter_by(email=email).first()
    else:
        student = Student.query.filter_by(registration_no=registration_no).first()

    if student and student.check_password(data['password']):
        return jsonify({
            'success': True,
            'message': 'Login successful',
            'data': {
                'token': issue_access_token(student.student_id, ROLE_STUDENT),
                'student': student.to_dict(),
            },
        }), 200

    return jsonify({'success': False, 'error_code': 'INVALID_CREDENTIALS', 'message': 'Invalid credentials'}), 401


@auth_bp.route('/api/volunteer/login', methods=['POST'])
def login_volunteer():
    data = request.get_json(silent=True) or {}
    if not data.get('email') or not data.get('password'):
        return validation_error('Missing email or password')

    volunteer = Volunteer.query.filter_by(email=data['email']).first()
    if volunteer and volunteer.check_password(data['password']):
        return jsonify({
            'success': True,
            'message': 'Login successful',
            'data': {
                'token': issue_access_token(volunteer.volunteer_id, ROLE_VOLUNTEER),
                'volunteer': volunteer.to_dict(),
            },
        }), 200

    return jsonify({'success': False, 'error_code': 'INVALID_CREDENTIALS', 'message': 'Invalid credentials'}), 401


@auth_bp.route('/api/student/logout', methods=['POST'])
@auth_bp.route('/api/volunteer/logout', methods=['POST'])
@jwt_required()
def logout():
    """
    Logout (revoke the access token)
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Logout successful
    """
    BLOCKLIST.add(get_jwt()['jti'])
    current_app.logger.info("Revoked token for %s", get_jwt_identity())
    return jsonify({'success': True, 'message': 'Logout successful'}), 200

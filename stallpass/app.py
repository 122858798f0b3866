"""
StallPass — Flask application
Gate check-in/out, stall feedback and one-time school rankings.
"""

import os

import click
from flask import Flask, jsonify, request
from flasgger import Swagger
from dotenv import load_dotenv

from stallpass.errors import StallPassError
from stallpass.extensions import BLOCKLIST, db, jwt, token_codec

load_dotenv()


def _database_uri():
    if os.environ.get('DATABASE_URL'):
        return os.environ['DATABASE_URL']
    db_user = os.environ.get('DB_USER', 'stallpass_user')
    db_pass = os.environ.get('DB_PASS', 'password')
    db_host = os.environ.get('DB_HOST', 'stallpass-db')
    db_name = os.environ.get('DB_NAME', 'stallpass_db')
    return f"postgresql://{db_user}:{db_pass}@{db_host}/{db_name}"


def _rank_weights(raw):
    weights = tuple(int(part) for part in raw.split(','))
    if len(weights) != 3:
        raise ValueError("RANK_WEIGHTS needs exactly three comma-separated integers")
    return weights


def create_app(test_config=None):
    app = Flask(__name__)

    # Configuration
    app.config['SQLALCHEMY_DATABASE_URI'] = _database_uri()
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['JWT_SECRET_KEY'] = os.environ.get('JWT_SECRET', 'dev-secret-change-me')
    app.config['QR_TOKEN_SECRET'] = os.environ.get('QR_TOKEN_SECRET', 'dev-qr-secret-change-me')
    app.config['QR_ROTATION_SECONDS'] = int(os.environ.get('QR_ROTATION_SECONDS', '30'))
    app.config['QR_GRACE_WINDOWS'] = int(os.environ.get('QR_GRACE_WINDOWS', '1'))
    app.config['FEEDBACK_QUOTA'] = int(os.environ.get('FEEDBACK_QUOTA', '200'))
    app.config['RANK_WEIGHTS'] = _rank_weights(os.environ.get('RANK_WEIGHTS', '5,3,1'))
    app.config['SCAN_COOLDOWN_SECONDS'] = int(os.environ.get('SCAN_COOLDOWN_SECONDS', '0'))
    app.config['LOG_LEVEL'] = os.environ.get('LOG_LEVEL', 'INFO')

    if test_config:
        app.config.update(test_config)

    app.logger.setLevel(app.config['LOG_LEVEL'])

    # Initialize Extensions
    db.init_app(app)
    jwt.init_app(app)
    token_codec.init_app(app)

    @jwt.token_in_blocklist_loader
    def check_if_token_in_blocklist(jwt_header, jwt_payload):
        return jwt_payload['jti'] in BLOCKLIST

    Swagger(app)

    @app.errorhandler(StallPassError)
    def handle_stallpass_error(error):
        app.logger.info("Rejected %s %s: %s", request.method, request.path, error.code)
        return jsonify(error.to_dict()), error.status_code

    # Register Blueprints
    from stallpass.routes.auth import auth_bp
    app.register_blueprint(auth_bp)

    from stallpass.routes.student import student_bp
    app.register_blueprint(student_bp, url_prefix='/api/student')

    from stallpass.routes.volunteer import volunteer_bp
    app.register_blueprint(volunteer_bp, url_prefix='/api/volunteer')

    @app.route('/health')
    def health():
        try:
            db.session.execute(db.text('SELECT 1'))
            return {"service": "stallpass", "status": "healthy"}, 200
        except Exception as e:
            return {"service": "stallpass", "status": "unhealthy", "error": str(e)}, 503

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables."""
        import stallpass.models  # noqa: F401 register models
        db.create_all()
        click.echo('Initialized the database.')

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=5000)

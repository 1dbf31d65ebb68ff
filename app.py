from datetime import datetime, timezone

from flask import Flask, jsonify

from config import Config
from models import db
from auth import resolve_session
from errors import register_error_handlers
from exam_sessions import SessionRegistry
from auth_routes import auth_bp
from admin_routes import admin_bp
from student_routes import student_bp


def init_database(app):
    """Create tables that do not exist yet"""
    with app.app_context():
        db.create_all()


def create_app(config=Config):
    app = Flask(__name__)
    app.config.from_object(config)
    app.config['SQLALCHEMY_DATABASE_URI'] = config.get_database_uri()
    app.secret_key = config.SECRET_KEY

    # Initialize database
    db.init_app(app)
    SessionRegistry(app)

    # Resolve the caller once per request; everything downstream reads g.auth
    app.before_request(resolve_session)
    register_error_handlers(app)

    # Register blueprints
    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(student_bp)

    @app.route('/')
    def home():
        return jsonify({'ok': True, 'service': 'exam-prep'})

    # Server time endpoint (UTC); clients align their countdown display to it
    @app.route('/api/server_time')
    def server_time():
        now = datetime.now(timezone.utc)
        return jsonify({'ok': True, 'server_time_utc': now.isoformat()})

    init_database(app)
    return app


# Run the application
if __name__ == '__main__':
    create_app().run(debug=True)

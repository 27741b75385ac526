import os
import click
from flask import Flask, jsonify
from flask_cors import CORS
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix
from .config import config_dict
from .extensions import db, migrate, jwt, mail
from .utils.s3_helper import storage
from .routes import auth, courses, lessons, uploads, enrollments, progress, student, admin


def create_app(config_object=None):
    app = Flask(__name__)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1)
    CORS(app, resources={r"/*": {"origins": "*"}})

    if config_object is None:
        config_object = config_dict.get(os.getenv("FLASK_ENV", "development"), config_dict["development"])
    app.config.from_object(config_object)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    mail.init_app(app)
    storage.init_app(app)

    register_error_handlers(app)
    register_jwt_handlers()
    register_commands(app)

    # Register blueprints
    app.register_blueprint(auth.bp, url_prefix="/auth")
    app.register_blueprint(courses.bp, url_prefix="/courses")
    app.register_blueprint(lessons.bp, url_prefix="/courses")
    app.register_blueprint(uploads.bp, url_prefix="/uploads")
    app.register_blueprint(enrollments.bp, url_prefix="/enrollments")
    app.register_blueprint(progress.bp, url_prefix="/progress")
    app.register_blueprint(student.bp, url_prefix="/students")
    app.register_blueprint(admin.bp, url_prefix="/admin")

    app.logger.info(f"Academy app created (mail enabled: {app.config.get('MAIL_ENABLED')})")
    return app


def register_error_handlers(app):
    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(e):
        db.session.rollback()
        app.logger.error(f"Database error: {e}")
        return jsonify({"error": "Database error"}), 500


def register_jwt_handlers():
    @jwt.unauthorized_loader
    def missing_token(reason):
        return jsonify({"error": reason}), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return jsonify({"error": reason}), 401

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return jsonify({"error": "Token has expired"}), 401


def register_commands(app):
    @app.cli.command("promote-admin")
    @click.argument("email")
    def promote_admin(email):
        """Give an existing user the admin role."""
        from .models import User

        user = User.query.filter_by(email=email.strip().lower()).first()
        if user is None:
            raise click.ClickException(f"No user with email {email}")
        user.role = "admin"
        db.session.commit()
        click.echo(f"{user.email} is now an admin")

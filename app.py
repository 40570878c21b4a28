import click
from flask import Flask
from flask_migrate import Migrate
from sqlalchemy import inspect

from config import Config
from models import db
from models.user import User
from routes import health_bp, auth_bp, complaints_bp, admin_bp, language_bp
from security.csrf import csrf_protect
from security.login_guard import LoginAttemptGuard, DatabaseAttemptStore, normalize_identifier
from security.password import hash_password
from security.password_policy import validate_password
from security.rbac import ADMIN
from utils.auth_context import load_current_user
from utils.seed import seed_roles, get_or_create_role


def create_app(config_object=Config, login_guard=None):
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(complaints_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(language_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    app.extensions["login_guard"] = login_guard or LoginAttemptGuard(DatabaseAttemptStore())

    with app.app_context():
        if app.config.get("AUTO_CREATE_TABLES"):
            db.create_all()
        # Seed default roles once the schema exists (safe & idempotent)
        if inspect(db.engine).has_table("roles"):
            seed_roles()

    @app.before_request
    def _load_user():
        load_current_user()

    app.before_request(csrf_protect)

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        # microphone stays off for the API origin; the frontend records voice notes itself
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app


def register_cli(app):
    @app.cli.command("create-admin")
    @click.argument("email", required=False)
    @click.option("--password", default=None, help="Required when the user does not exist yet.")
    @click.option("--full-name", default="Administrator", show_default=True)
    def create_admin(email, password, full_name):
        """Create an administrator, or grant ADMIN to an existing user."""
        email = normalize_identifier(email or app.config.get("ADMIN_DEFAULT_EMAIL"))
        admin_role = get_or_create_role(ADMIN)

        user = User.query.filter_by(email=email).first()
        if user:
            if admin_role not in user.roles:
                user.roles.append(admin_role)
            db.session.commit()
            click.echo(f"{user.email} already exists; ADMIN role assigned")
            return

        if not password:
            raise click.UsageError("--password is required to create a new admin")
        valid, errors = validate_password(password)
        if not valid:
            raise click.UsageError("Password does not meet policy: " + "; ".join(errors))

        user = User(email=email, password_hash=hash_password(password), full_name=full_name)
        user.roles.append(admin_role)
        db.session.add(user)
        db.session.commit()
        click.echo(f"Admin user {user.email} created")


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)

import logging

import click
from flask import Flask
from flask.cli import with_appcontext
from flask_cors import CORS
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

from config import Config, _normalise_prefix


db = SQLAlchemy()
migrate = Migrate()
cors = CORS()


def create_app(config_class: type[Config] = Config) -> Flask:
    app = Flask(__name__, static_folder=None)
    app.config.from_object(config_class)

    url_prefix = _normalise_prefix(app.config.get("URL_PREFIX", ""))
    app.config["URL_PREFIX"] = url_prefix
    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    db.init_app(app)
    migrate.init_app(app, db)
    cors.init_app(
        app,
        resources={f"{url_prefix}/*": {"origins": "*"}},
        methods=["POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Timezone-Offset"],
        send_wildcard=True,
    )

    from . import models  # noqa: F401  # tables for create_all and Alembic autogenerate

    with app.app_context():
        db.create_all()

    from .routes import bp as main_bp

    app.register_blueprint(main_bp, url_prefix=url_prefix or None)

    @app.cli.command("seed")
    @with_appcontext
    def seed() -> None:
        """Seed initial data for development."""
        from .seed import seed_data

        seed_data()
        click.echo("Base de données initialisée avec des données d'exemple.")

    @app.cli.command("check-overlaps")
    @with_appcontext
    def check_overlaps() -> None:
        """Report rooms booked twice on overlapping time ranges."""
        from .conflicts import audit_overlaps

        violations = audit_overlaps()
        for violation in violations:
            click.echo(
                f"Salle {violation.room_code} : séances {violation.first_session_id} "
                f"et {violation.second_session_id} se chevauchent."
            )
        if violations:
            raise SystemExit(1)
        click.echo("Aucun chevauchement de réservation.")

    return app

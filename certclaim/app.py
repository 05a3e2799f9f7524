import logging
import os

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

from .shared.errors import IssuanceError  # noqa: E402


def create_app():
    app = Flask(__name__)
    app.secret_key = os.getenv("SECRET_KEY", "dev")

    DB_USER = os.getenv("DB_USER", "certclaim")
    DB_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
    DB_HOST = os.getenv("DB_HOST", "db")
    DB_NAME = os.getenv("DB_NAME", "certclaim")
    DATABASE_URL = os.getenv(
        "DATABASE_URL",
        f"postgresql+psycopg2://{DB_USER}:{DB_PASSWORD}@{DB_HOST}/{DB_NAME}",
    )

    app.config["SQLALCHEMY_DATABASE_URI"] = DATABASE_URL
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["MAX_CONTENT_LENGTH"] = 25 * 1024 * 1024

    site_root = os.getenv("SITE_ROOT", "/srv")
    app.config["SITE_ROOT"] = site_root
    app.config["TEMPLATE_ROOT"] = os.getenv(
        "TEMPLATE_ROOT", os.path.join(site_root, "templates")
    )
    app.config["TEMPLATE_FETCH_TIMEOUT"] = float(
        os.getenv("TEMPLATE_FETCH_TIMEOUT", "30")
    )

    db.init_app(app)

    @app.errorhandler(IssuanceError)
    def issuance_error(exc: IssuanceError):
        return jsonify(exc.to_dict()), exc.status_code

    @app.get("/health")
    def health():  # pragma: no cover - simple healthcheck
        return "OK", 200

    from .routes.generate import bp as generate_bp
    from .routes.events import bp as events_bp
    from .routes.admin_events import bp as admin_events_bp

    app.register_blueprint(generate_bp)
    app.register_blueprint(events_bp)
    app.register_blueprint(admin_events_bp)

    if not app.debug:
        logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))

    return app

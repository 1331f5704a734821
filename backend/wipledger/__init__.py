# backend/wipledger/__init__.py
from flask import Flask, g, request

from .config import Config
from .extensions import db, migrate



def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.balances import balances_bp
    from .routes.receipts import receipts_bp
    from .routes.transfers import transfers_bp
    from .routes.launches import launches_bp
    from .routes.admin import admin_bp

    app.register_blueprint(balances_bp)
    app.register_blueprint(receipts_bp)
    app.register_blueprint(transfers_bp)
    app.register_blueprint(launches_bp)
    app.register_blueprint(admin_bp)

    @app.before_request
    def load_acting_user():
        # Authentication lives outside the ledger; upstream passes the user through.
        raw = request.headers.get("X-User-Id")
        if raw and raw.strip().isdigit():
            g.user_id = int(raw.strip())

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app

from flask import Flask, jsonify
from sqlalchemy.pool import StaticPool

from config import Config

from . import models  # ensure models are registered with SQLAlchemy
from .extensions import db
from .routes import auth, errors, files, health, inventory, jobs, notifications, tracking, users
from .seed import ensure_seed_data
from .store import build_store
from .utils.logging import configure_logging


def create_app(config_override=None):
    app = Flask(__name__)

    # load configuration from environment variables
    app.config.from_object(Config)
    if config_override:
        app.config.update(config_override)

    configure_logging(app)

    database_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if database_uri.startswith("sqlite:///:memory:"):
        engine_options = app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {})
        connect_args = engine_options.setdefault("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        engine_options.setdefault("poolclass", StaticPool)

    db.init_app(app)

    store = build_store(app.config)
    app.extensions["moveit_store"] = store

    with app.app_context():
        if store.backend == "sqlalchemy":
            db.create_all()
        ensure_seed_data(store, app.config)

    app.register_blueprint(errors.bp)
    app.register_blueprint(health.bp)
    app.register_blueprint(auth.bp)
    app.register_blueprint(users.bp)
    app.register_blueprint(inventory.bp)
    app.register_blueprint(jobs.bp)
    app.register_blueprint(notifications.bp)
    app.register_blueprint(tracking.bp)
    app.register_blueprint(files.bp)

    @app.get("/")
    def home():
        return jsonify({"service": "MoveIt247 operations backend", "store": store.backend})

    app.logger.info("MoveIt247 backend started with the %s store", store.backend)
    return app

import logging

from flask import Flask, jsonify

from library_api.config import Config
from library_api.errors import register_error_handlers
from library_api.extensions import db, jwt, migrate
from library_api.utils.auth import register_jwt_callbacks


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # models must be imported before create_all / migrations see the metadata
    from library_api.models import book, borrow, token_blocklist, user  # noqa: F401

    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    register_jwt_callbacks(jwt)

    register_error_handlers(app)

    from library_api.controllers.auth_controller import auth_bp
    from library_api.controllers.book_controller import book_bp
    from library_api.controllers.borrow_controller import borrow_bp
    from library_api.controllers.user_controller import user_bp
    app.register_blueprint(auth_bp, url_prefix="/api")
    app.register_blueprint(book_bp, url_prefix="/api")
    app.register_blueprint(borrow_bp, url_prefix="/api")
    app.register_blueprint(user_bp, url_prefix="/api")

    from library_api.cli import register_commands
    register_commands(app)

    @app.get("/health")
    def health():
        return jsonify({"ok": True})

    return app

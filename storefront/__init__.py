from flask import Flask, jsonify
from .config import Config
from .extensions import db, jwt, cors, migrate

def create_app(config_overrides=None):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)
    Config.init_app(app)

    # Init extensions
    db.init_app(app)
    jwt.init_app(app)
    cors.init_app(app, resources={r"/*": {"origins": app.config["CORS_ORIGINS"]}})
    migrate.init_app(app, db)

    # Register blueprints
    from .auth import bp as auth_bp; app.register_blueprint(auth_bp)
    from .cart import bp as cart_bp; app.register_blueprint(cart_bp)
    from .configuration import bp as configuration_bp; app.register_blueprint(configuration_bp)
    from .offer import bp as offer_bp; app.register_blueprint(offer_bp)
    from .settings import bp as settings_bp; app.register_blueprint(settings_bp)

    from .errors import register_error_handlers
    register_error_handlers(app)

    from .cli import register_cli
    register_cli(app)

    @app.get("/")
    def health():
        return jsonify(ok=True, msg="API running")

    with app.app_context():
        from . import model  # noqa: F401  (register tables)
        db.create_all()

    app.logger.info("storefront ready, blueprints: %s", sorted(app.blueprints.keys()))
    return app

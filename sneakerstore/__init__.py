import logging

from flask import Flask

from .config import Config
from .extensions import db, jwt, cors, migrate
from .utils.api import ok


def create_app(config_class=Config):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_class)
    config_class.init_app(app)
    app.json.ensure_ascii = False
    app.json.sort_keys = False

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Init extensions
    db.init_app(app)
    jwt.init_app(app)
    origins = [o.strip() for o in str(app.config["CORS_ORIGINS"]).split(",") if o.strip()]
    cors.init_app(app, resources={r"/api/*": {"origins": origins}})
    migrate.init_app(app, db)

    from .errors import register_error_handlers, register_jwt_handlers
    register_error_handlers(app)
    register_jwt_handlers(jwt)

    # Register blueprints
    from .order import bp as order_bp; app.register_blueprint(order_bp)
    from .coupon import bp as coupon_bp; app.register_blueprint(coupon_bp)
    from .cart import bp as cart_bp; app.register_blueprint(cart_bp)

    from .cli import register_cli
    register_cli(app)

    @app.get("/")
    def health():
        return ok("API đang chạy...")

    with app.app_context():
        from . import model  # noqa: F401  (register tables)
        db.create_all()

    app.logger.debug("routes: %s", sorted(r.rule for r in app.url_map.iter_rules()))
    return app

import os
from datetime import timedelta


def _env_bool(name, default=False):
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}


class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    ENV = os.getenv("FLASK_ENV", "development")
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-change-me")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=1)

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173")

    # Line-item prices come from the catalog unless explicitly told otherwise
    TRUST_CLIENT_PRICES = _env_bool("TRUST_CLIENT_PRICES", False)
    ORDER_NUMBER_PREFIX = os.getenv("ORDER_NUMBER_PREFIX", "SP")
    # Shop-local day boundaries for statistics (Vietnam is UTC+7)
    SHOP_UTC_OFFSET_HOURS = float(os.getenv("SHOP_UTC_OFFSET_HOURS", "7"))

    DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
    MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "100"))

    @staticmethod
    def init_app(app):
        if app.config.get("SQLALCHEMY_DATABASE_URI"):
            return
        if not os.getenv("DATABASE_URL"):
            os.makedirs(app.instance_path, exist_ok=True)
            app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{os.path.join(app.instance_path, 'app.db')}"
        else:
            app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    JWT_SECRET_KEY = "test-secret-key-with-at-least-32-bytes!"
    TRUST_CLIENT_PRICES = False
    LOG_LEVEL = "WARNING"

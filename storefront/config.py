import os
from datetime import timedelta

class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    JSON_SORT_KEYS = False
    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-change-me")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=1)
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")
    CURRENCY_SYMBOL = os.environ.get("CURRENCY_SYMBOL", "£")

    @staticmethod
    def init_app(app):
        if not os.getenv("DATABASE_URL"):
            os.makedirs(app.instance_path, exist_ok=True)
            app.config.setdefault(
                "SQLALCHEMY_DATABASE_URI",
                f"sqlite:///{os.path.join(app.instance_path, 'storefront.db')}",
            )
        else:
            app.config.setdefault("SQLALCHEMY_DATABASE_URI", os.getenv("DATABASE_URL"))

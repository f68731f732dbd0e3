import logging

from flask import Flask
from config import DevConfig
from models import db
from errors import register_error_handlers
from routes_auth import bp as auth_bp
from routes_orders import bp as orders_bp
from routes_products import bp as products_bp
from routes_users import bp as users_bp


def create_app(config_object=DevConfig):
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    db.init_app(app)
    register_error_handlers(app)

    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(orders_bp, url_prefix="/ordenes")
    app.register_blueprint(products_bp, url_prefix="/producto")
    app.register_blueprint(users_bp, url_prefix="/user")

    with app.app_context():
        db.create_all()

    return app


if __name__ == "__main__":
    create_app().run(host="0.0.0.0", port=3000, debug=True)

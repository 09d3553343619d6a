import os
import traceback

from dotenv import load_dotenv
from flasgger import Swagger
from flask import Flask
from flask_cors import CORS

from app.api.admin.accounts import accounts_bp
from app.api.admin.bonuses import bonuses_bp
from app.api.admin.check_ins import check_ins_bp
from app.api.admin.customers import customers_bp
from app.api.admin.dashboard import dashboard_bp
from app.api.admin.locations import locations_bp
from app.api.admin.milestones import milestones_bp
from app.api.admin.payment_requests import payment_requests_bp
from app.api.admin.services import services_bp
from app.api.admin.washer_tools import washer_tools_bp
from app.api.worker.worker import worker_bp
from app.routes.auth import auth_bp
from swagger__config import SWAGGER_CONFIG, SWAGGER_TEMPLATE

load_dotenv()
from app.config import Config  # noqa: E402
from app.extensions import db  # noqa: E402

BLUEPRINTS = (
    auth_bp,
    accounts_bp,
    locations_bp,
    services_bp,
    customers_bp,
    check_ins_bp,
    washer_tools_bp,
    payment_requests_bp,
    milestones_bp,
    bonuses_bp,
    dashboard_bp,
    worker_bp,
)


def create_app(config_overrides=None):
    print("Building car wash app")
    app = Flask(__name__)
    try:
        app.config.from_object(Config)
        if config_overrides:
            app.config.update(config_overrides)
        print(f"  config: {len(app.config)} keys")

        CORS(app)
        db.init_app(app)
        print("  cors + database ready")

        template = dict(SWAGGER_TEMPLATE, host=os.environ.get("API_HOST", "127.0.0.1:5000"))
        Swagger(app, config=SWAGGER_CONFIG, template=template)
        print("  swagger ui at /api/docs")

        for bp in BLUEPRINTS:
            app.register_blueprint(bp)
            print(f"  ✓ {bp.name} ({bp.url_prefix})")

        @app.route("/")
        def home():
            """
            Health check
            ---
            tags:
              - Utility
            responses:
              200:
                description: The API is up
            """
            return {"status": "ok", "message": "Car wash backend is running!"}, 200

        print(f"  {len(list(app.url_map.iter_rules()))} routes")

    except Exception as e:
        print(f"create_app() failed: {e}")
        print(traceback.format_exc())
        raise

    print("Car wash app ready")
    return app


app = create_app()

if __name__ == "__main__":
    # .env needs DATABASE_URL=mysql+pymysql://<USER>:<PASSWORD>@<HOST>:<PORT>/carwash
    app.run(
        host="0.0.0.0",
        port=int(os.environ.get("PORT", 5000)),
        debug=os.environ.get("FLASK_ENV") != "production",
    )

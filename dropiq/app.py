import logging
import os

from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_cors import CORS
from flask_socketio import SocketIO
from sqlalchemy import select, text

from dropiq.auth.passwords import bcrypt
from dropiq.auth.rate_limit import limiter
from dropiq.config import Config
from dropiq.db.session import configure_engine, get_engine, get_session
from dropiq.errors import register_error_handlers
from dropiq.models import Achievement, Airdrop, Base
from dropiq.routes import BLUEPRINTS
from dropiq.services.registry import EXTENSION_KEY, build_registry

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

DEFAULT_ACHIEVEMENTS = [
    {"key": "first_steps", "name": "First Steps", "description": "Complete your first airdrop task", "icon": "Trophy", "category": "milestone", "rarity": "common", "points": 10},
    {"key": "airdrop_hunter", "name": "Airdrop Hunter", "description": "Complete 10 airdrop tasks", "icon": "Target", "category": "milestone", "rarity": "uncommon", "points": 50},
    {"key": "strategy_master", "name": "Strategy Master", "description": "Create a strategy with 100+ likes", "icon": "Star", "category": "social", "rarity": "rare", "points": 100},
]

SAMPLE_AIRDROPS = [
    {
        "name": "LayerZero",
        "slug": "layerzero",
        "description": "Omnichain interoperability protocol rewarding early cross-chain message senders.",
        "category": "Infrastructure",
        "website_url": "https://layerzero.network",
        "twitter_url": "https://twitter.com/LayerZero_Labs",
        "status": "approved",
        "risk_score": 15,
        "hype_score": 92,
        "requirements": {"minTransactions": 10, "chains": [1, 42161, 10]},
    },
    {
        "name": "zkSync Era",
        "slug": "zksync-era",
        "description": "ZK rollup on Ethereum; activity on Era mainnet is tracked for distribution.",
        "category": "Layer 2",
        "website_url": "https://zksync.io",
        "twitter_url": "https://twitter.com/zksync",
        "status": "approved",
        "risk_score": 20,
        "hype_score": 88,
        "requirements": {"minTransactions": 5},
    },
    {
        "name": "Scroll",
        "slug": "scroll",
        "description": "zkEVM rollup; bridging and dApp usage are expected eligibility signals.",
        "category": "Layer 2",
        "website_url": "https://scroll.io",
        "status": "approved",
        "risk_score": 25,
        "hype_score": 75,
        "requirements": {"minTransactions": 3},
    },
]


def create_app(config_overrides=None, services=None):
    """Build the API app.

    ``config_overrides`` is applied on top of :class:`Config`; ``services`` replaces
    entries of the service registry by name.
    """
    load_dotenv()
    app = Flask(__name__)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    logging.basicConfig(level=app.config["LOG_LEVEL"], format=LOG_FORMAT)
    CORS(app, origins=app.config["CORS_ORIGINS"], supports_credentials=True)

    configure_engine(app.config["DATABASE_URL"], echo=app.config["SQLALCHEMY_ECHO"])
    register_error_handlers(app)
    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint, url_prefix="/api")

    limiter.init_app(app)
    bcrypt.init_app(app)

    socketio = SocketIO(
        app,
        cors_allowed_origins=app.config["CORS_ORIGINS"],
        async_mode=app.config["SOCKETIO_ASYNC_MODE"],
    )
    app.socketio = socketio
    app.extensions[EXTENSION_KEY] = build_registry(app.config, socketio, services)

    @app.route("/api/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok"})

    @app.route("/api/db-health", methods=["GET"])
    def db_health():
        try:
            verify_database_connection()
            return jsonify({"status": "ok"})
        except Exception as exc:
            logger.error("Database health check failed: %s", exc)
            return jsonify({"status": "error", "message": str(exc)}), 500

    with app.app_context():
        init_db(seed=app.config["SEED_SAMPLE_DATA"])

    return app


def init_db(seed: bool = True):
    Base.metadata.create_all(bind=get_engine())
    if seed:
        seed_data()


def verify_database_connection():
    with get_engine().connect() as connection:
        connection.execute(text("SELECT 1"))


def seed_data():
    """Insert the achievement catalog and a few approved airdrops into an empty database."""
    session = get_session()
    try:
        existing_achievements = session.execute(select(Achievement.key)).scalars().all()
        for item in DEFAULT_ACHIEVEMENTS:
            if item["key"] not in existing_achievements:
                session.add(Achievement(**item))

        existing_airdrops = session.execute(select(Airdrop.id)).first()
        if existing_airdrops is None:
            session.add_all([Airdrop(**item) for item in SAMPLE_AIRDROPS])

        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def main():
    app = create_app()
    app.socketio.run(
        app,
        host="0.0.0.0",
        port=int(os.getenv("PORT", 5000)),
        debug=app.config["FLASK_ENV"] == "development",
        allow_unsafe_werkzeug=True,
    )


if __name__ == "__main__":
    main()

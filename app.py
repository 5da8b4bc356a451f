import atexit
import logging

from flask import Flask, jsonify, request
from flask_cors import CORS

from api.routes import bp as api_bp
from services.market import MarketDataClient
from services.portfolio import InstrumentStore, load_instruments
from services.refresh import RefreshScheduler
from utils.config import load_settings


def configure_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(settings=None, client=None, store=None, start_refresh=None):
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    client = client or MarketDataClient.from_settings(settings)
    store = store if store is not None else InstrumentStore(load_instruments(settings.portfolio_csv))
    refresher = RefreshScheduler(client, store, interval_seconds=settings.refresh_interval_ms / 1000.0)

    app = Flask(__name__)
    CORS(app)
    app.extensions['allocation'] = {
        'settings': settings,
        'client': client,
        'store': store,
        'refresher': refresher,
    }
    app.register_blueprint(api_bp)

    # Return JSON for API errors so the frontend never sees HTML
    @app.errorhandler(400)
    def handle_400(e):
        if request.path.startswith('/api/'):
            return jsonify(error=str(e)), 400
        return e, 400

    @app.errorhandler(404)
    def handle_404(e):
        if request.path.startswith('/api/'):
            return jsonify(error="Not found"), 404
        return e, 404

    @app.errorhandler(500)
    def handle_500(e):
        if request.path.startswith('/api/'):
            return jsonify(error="Internal server error"), 500
        return e, 500

    if settings.refresh_enabled if start_refresh is None else start_refresh:
        refresher.start()
        atexit.register(refresher.stop)

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(host='127.0.0.1', port=5000, debug=True, use_reloader=False)

"""
Creates and returns main flask app
"""

import os
import sys
import threading

from flask import Flask, jsonify
from flask_cors import CORS

from .liquidation.logging_config import global_exception_handler
from .liquidation.routes import init_bot, liquidation, start_bot


def create_app(network=None, start=True):
    """Create Flask app and start the liquidation bot for the network"""
    app = Flask(__name__)
    CORS(app)

    sys.excepthook = global_exception_handler

    @app.route("/health", methods=["GET"])
    def health_check():
        return jsonify({"status": "healthy"}), 200

    network = network or os.environ.get("NETWORK", "localhost")

    if start:
        # Config errors abort startup
        bot_manager = init_bot(network)
        bot_thread = threading.Thread(target=start_bot, args=(bot_manager,), daemon=True)
        bot_thread.start()

    # Register the liquidation blueprint after starting the bot
    app.register_blueprint(liquidation, url_prefix="/liquidation")

    return app

"""Module for handling API routes"""

import os

from flask import Blueprint, jsonify, make_response, send_file

from .bot_manager import BotManager
from .logging_config import setup_logger
from .state_store import generate_state_report

logger = setup_logger()

liquidation = Blueprint("liquidation", __name__)


def init_bot(network=None):
    """Load the configuration and wire the bot. Configuration errors propagate to the caller."""
    bot_manager = BotManager(network, notify=True)

    # Store on module level for route access before app context is available
    start_bot._bot_manager = bot_manager

    return bot_manager


def start_bot(bot_manager):
    """Run the liquidation bot until it is stopped"""
    bot_manager.start()

    return bot_manager


def _get_bot_manager():
    """Get the bot manager instance."""
    return getattr(start_bot, "_bot_manager", None)


@liquidation.route("/status", methods=["GET"])
def get_status():
    bot_manager = _get_bot_manager()
    if not bot_manager:
        return jsonify({"error": "Liquidation bot not initialized"}), 500

    return make_response(jsonify(bot_manager.status()))


@liquidation.route("/userStates", methods=["GET"])
def get_user_states():
    bot_manager = _get_bot_manager()
    if not bot_manager:
        return jsonify({"error": "Liquidation bot not initialized"}), 500

    logger.info("API: Getting user states for %s", bot_manager.config.NETWORK_NAME)
    records = bot_manager.bot.state_store.load_all()
    response = [{"userAddress": address, **record.to_dict()} for address, record in records.items()]
    return make_response(jsonify(response))


@liquidation.route("/report", methods=["GET"])
def get_report():
    bot_manager = _get_bot_manager()
    if not bot_manager:
        return jsonify({"error": "Liquidation bot not initialized"}), 500

    try:
        summary = generate_state_report(bot_manager.config.STATE_DIR_PATH)
    except FileNotFoundError as ex:
        return jsonify({"error": str(ex)}), 404

    return send_file(
        os.path.abspath(summary.report_path),
        mimetype="text/csv",
        as_attachment=True,
        download_name=os.path.basename(summary.report_path),
    )

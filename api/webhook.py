# -*- coding: utf-8 -*-
"""
Serverless Function - Chat Webhook Entry Point

This module handles:
1. LINE webhooks: validate X-Line-Signature and dispatch events
2. Telegram webhooks: validate the secret token header and dispatch updates
3. Always return 200 to the platform once the request is authentic, so
   failed processing is never retried (and never double-committed)
"""

import hmac
import logging
import sys
from pathlib import Path

# Add project root to sys.path for local development
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from flask import Flask, abort, request
from linebot.v3 import WebhookHandler
from linebot.v3.exceptions import InvalidSignatureError
from linebot.v3.messaging import ApiClient, Configuration, MessagingApiBlob
from linebot.v3.webhooks import AudioMessageContent, MessageEvent, PostbackEvent, TextMessageContent

from chatledger.config import (
    LINE_CHANNEL_ACCESS_TOKEN,
    LINE_CHANNEL_SECRET,
    LINE_ENABLED,
    TELEGRAM_ENABLED,
    TELEGRAM_WEBHOOK_SECRET,
)
from chatledger.engine.conversation import ConversationEngine
from chatledger.ledger.database import init_db
from chatledger.messaging.line_adapter import LineAdapter
from chatledger.messaging.line_handler import handle_audio_message, handle_postback, handle_text_message
from chatledger.messaging.telegram_adapter import TelegramAdapter
from chatledger.messaging.telegram_handler import handle_update

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize Flask app
app = Flask(__name__)

# Global variables for lazy initialization (serverless cold starts)
_db_ready = False
_line_engine = None
_line_blob_api = None
_handler = None
_telegram_adapter = None
_telegram_engine = None


def _ensure_db():
    global _db_ready
    if not _db_ready:
        init_db()
        _db_ready = True


def get_line_engine():
    """Get or initialize the LINE conversation engine (lazy initialization)"""
    global _line_engine
    if _line_engine is None:
        _ensure_db()
        logger.info("Initializing LINE engine")
        _line_engine = ConversationEngine(LineAdapter())
    return _line_engine


def get_line_blob_api():
    """Get or initialize LINE Messaging API Blob client (voice note downloads)"""
    global _line_blob_api
    if _line_blob_api is None:
        configuration = Configuration(access_token=LINE_CHANNEL_ACCESS_TOKEN)
        _line_blob_api = MessagingApiBlob(ApiClient(configuration))
    return _line_blob_api


def get_handler():
    """Get or initialize Webhook Handler (lazy initialization)"""
    global _handler
    if _handler is None:
        logger.info("Initializing WebhookHandler")
        _handler = WebhookHandler(LINE_CHANNEL_SECRET)

        @_handler.add(MessageEvent, message=TextMessageContent)
        def message_text(event):
            try:
                handle_text_message(event, get_line_engine())
            except Exception as e:
                logger.exception(f"Error in message_text handler: {e}")

        @_handler.add(MessageEvent, message=AudioMessageContent)
        def message_audio(event):
            try:
                handle_audio_message(event, get_line_blob_api(), get_line_engine())
            except Exception as e:
                logger.exception(f"Error in message_audio handler: {e}")

        @_handler.add(PostbackEvent)
        def postback(event):
            try:
                handle_postback(event, get_line_engine())
            except Exception as e:
                logger.exception(f"Error in postback handler: {e}")

        logger.info("Event handlers registered (text + audio + postback)")

    return _handler


def get_telegram():
    """Get or initialize the Telegram adapter and engine (lazy initialization)"""
    global _telegram_adapter, _telegram_engine
    if _telegram_engine is None:
        _ensure_db()
        logger.info("Initializing Telegram engine")
        _telegram_adapter = TelegramAdapter()
        _telegram_engine = ConversationEngine(_telegram_adapter)
    return _telegram_adapter, _telegram_engine


@app.route("/api/webhook", methods=['GET'])
def webhook_health():
    """Health check endpoint for GET requests"""
    return 'Chat ledger bot is running!', 200


@app.route("/api/webhook", methods=['POST'])
def webhook():
    """
    LINE Webhook entry function

    Returns:
        str: Always returns 'OK' to acknowledge receipt to LINE
    """
    if not LINE_ENABLED:
        abort(404)

    signature = request.headers.get('X-Line-Signature')
    if not signature:
        logger.warning("Missing X-Line-Signature header")
        abort(400)

    body = request.get_data(as_text=True)
    logger.info(f"Request body: {body}")

    try:
        get_handler().handle(body, signature)
    except InvalidSignatureError:
        logger.error("Invalid signature")
        abort(400)
    except Exception as e:
        # Even on error, return 200 to prevent LINE from retrying
        logger.error(f"Error handling webhook: {e}")

    return 'OK'


@app.route("/api/telegram/webhook", methods=['POST'])
def telegram_webhook():
    """
    Telegram Webhook entry function

    Returns:
        str: Always returns 'OK' once the secret token matches
    """
    if not TELEGRAM_ENABLED:
        abort(404)

    if TELEGRAM_WEBHOOK_SECRET:
        token = request.headers.get('X-Telegram-Bot-Api-Secret-Token', '')
        if not hmac.compare_digest(token, TELEGRAM_WEBHOOK_SECRET):
            logger.warning("Invalid Telegram secret token")
            abort(401)

    update = request.get_json(silent=True)
    if not isinstance(update, dict):
        abort(400)

    try:
        adapter, engine = get_telegram()
        handle_update(update, engine, adapter)
    except Exception as e:
        # Telegram retries non-2xx responses; a retry could commit twice
        logger.exception(f"Error handling Telegram update: {e}")

    return 'OK'


# Local development entry point
if __name__ == "__main__":
    app.run(debug=True, port=5000)

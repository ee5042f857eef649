"""
Environment configuration module
Loads and validates all required environment variables.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file (for local development)
load_dotenv()

# Required environment variables
OPENAI_API_KEY = os.getenv('OPENAI_API_KEY')
REDIS_URL = os.getenv('REDIS_URL')

# Ledger database (SQLAlchemy URL)
DEFAULT_DB_PATH = Path(__file__).resolve().parents[1] / "data" / "chatledger.db"
DATABASE_URL = os.getenv('DATABASE_URL', f"sqlite:///{DEFAULT_DB_PATH}")

# Inference service
GPT_MODEL = os.getenv('GPT_MODEL', 'gpt-4o-mini')
TRANSCRIBE_MODEL = os.getenv('TRANSCRIBE_MODEL', 'gpt-4o-mini-transcribe')
OPENAI_TIMEOUT = float(os.getenv('OPENAI_TIMEOUT', '20'))

# Transports (each one is enabled only when its credentials are present)
LINE_CHANNEL_ACCESS_TOKEN = os.getenv('LINE_CHANNEL_ACCESS_TOKEN', '')
LINE_CHANNEL_SECRET = os.getenv('LINE_CHANNEL_SECRET', '')
LINE_ENABLED = bool(LINE_CHANNEL_ACCESS_TOKEN and LINE_CHANNEL_SECRET)

TELEGRAM_BOT_TOKEN = os.getenv('TELEGRAM_BOT_TOKEN', '')
TELEGRAM_WEBHOOK_SECRET = os.getenv('TELEGRAM_WEBHOOK_SECRET', '')
TELEGRAM_ENABLED = bool(TELEGRAM_BOT_TOKEN)
TELEGRAM_TIMEOUT = int(os.getenv('TELEGRAM_TIMEOUT', '10'))

# Conversation state (Redis)
CONVERSATION_STATE_TTL = int(os.getenv('CONVERSATION_STATE_TTL', '86400'))  # 1 day
CHAT_LOCK_TIMEOUT = int(os.getenv('CHAT_LOCK_TIMEOUT', '30'))

TIMEZONE = os.getenv('TIMEZONE', 'America/Sao_Paulo')

# Validate required variables
required_vars = {
    'OPENAI_API_KEY': OPENAI_API_KEY,
    'REDIS_URL': REDIS_URL,
}

missing_vars = [var_name for var_name, var_value in required_vars.items() if not var_value]

if missing_vars:
    raise ValueError(f"Missing required environment variables: {', '.join(missing_vars)}")

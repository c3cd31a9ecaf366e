"""
Webhook server entry point for the Ledger Bot

Point Twilio's WhatsApp "when a message comes in" URL at /webhook.

Run with:
    uvicorn app.main:app --host 0.0.0.0 --port 3000

DESIGN PRINCIPLES:
1. Settings are read once at import; missing services run in mock mode
2. Logging is configured before any component is built
3. The app object is all that uvicorn needs
"""

from ledgerbot.api import create_app
from ledgerbot.audit import configure_logging
from ledgerbot.config import get_settings


configure_logging(get_settings().app.log_level)

app = create_app()

import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Browser origins allowed to reach the relay (comma separated)
    CORS_ORIGINS = [o.strip() for o in os.environ.get(
        'CORS_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000'
    ).split(',') if o.strip()]
    # Relay URL used by the terminal participant
    RELAY_URL = os.environ.get('RELAY_URL', 'http://localhost:5000')
    # Clock driver tick interval (seconds)
    CLOCK_TICK_SEC = float(os.environ.get('CLOCK_TICK_SEC', '1'))
    # Late-joiner handshake: wait before the first request_config, then back off
    RECONCILE_INITIAL_DELAY_SEC = float(os.environ.get('RECONCILE_INITIAL_DELAY_SEC', '1'))
    RECONCILE_BACKOFF_SEC = float(os.environ.get('RECONCILE_BACKOFF_SEC', '1'))
    RECONCILE_MAX_ATTEMPTS = int(os.environ.get('RECONCILE_MAX_ATTEMPTS', '4'))
    # Channel credentials
    CHANNEL_TOKEN_TTL_SEC = int(os.environ.get('CHANNEL_TOKEN_TTL_SEC', '3600'))
    REQUIRE_CHANNEL_TOKEN = os.environ.get('REQUIRE_CHANNEL_TOKEN', '1') not in ('0', 'false', 'False', '')

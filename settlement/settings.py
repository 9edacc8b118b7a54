from django.conf import settings

# Default settings for the settlement app
SETTLEMENT_SETTINGS = {
    # User model partners are attached to
    'USER_MODEL': getattr(settings, 'AUTH_USER_MODEL', 'auth.User'),

    # Async Processing
    'USE_CELERY': getattr(settings, 'SETTLEMENT_USE_CELERY', False),

    # Wallet Settings
    'CURRENCY': getattr(settings, 'SETTLEMENT_CURRENCY', 'INR'),
    'DEFAULT_WALLET_TYPE': getattr(settings, 'SETTLEMENT_DEFAULT_WALLET_TYPE', 'primary'),

    # ==========================================
    # ON-DEMAND (T+0) SETTLEMENT
    # ==========================================

    # Maximum transactions a retailer can select for one InstaCash batch
    'INSTANT_MAX_BATCH_SIZE': getattr(settings, 'SETTLEMENT_INSTANT_MAX_BATCH_SIZE', 50),

    # ==========================================
    # SCHEDULED (T+1) SETTLEMENT
    # ==========================================

    # Upper bound of transactions fetched by one sweep
    'T1_PAGE_SIZE': getattr(settings, 'SETTLEMENT_T1_PAGE_SIZE', 500),

    # Minutes after which a batch still processing is treated as interrupted
    'STALE_BATCH_MINUTES': getattr(settings, 'SETTLEMENT_STALE_BATCH_MINUTES', 30),

    # Seconds between two reads of the cron settings row
    'POLL_INTERVAL': getattr(settings, 'SETTLEMENT_POLL_INTERVAL', 60),

    # Defaults used when the cron settings row is first created
    'DEFAULT_TIMEZONE': getattr(settings, 'SETTLEMENT_DEFAULT_TIMEZONE', 'Asia/Kolkata'),
    'DEFAULT_SCHEDULE_HOUR': getattr(settings, 'SETTLEMENT_DEFAULT_SCHEDULE_HOUR', 7),
    'DEFAULT_SCHEDULE_MINUTE': getattr(settings, 'SETTLEMENT_DEFAULT_SCHEDULE_MINUTE', 0),

    # Start the scheduler thread from AppConfig.ready()
    'AUTO_START_SCHEDULER': getattr(settings, 'SETTLEMENT_AUTO_START_SCHEDULER', False),

    # ==========================================
    # LEDGER
    # ==========================================

    # Dotted path of the ledger backend class
    'LEDGER_BACKEND': getattr(
        settings,
        'SETTLEMENT_LEDGER_BACKEND',
        'settlement.services.ledger_service.DatabaseLedger'
    ),

    # Remote ledger (only used by RemoteLedger)
    'LEDGER_API_URL': getattr(settings, 'SETTLEMENT_LEDGER_API_URL', ''),
    'LEDGER_API_KEY': getattr(settings, 'SETTLEMENT_LEDGER_API_KEY', ''),
    'LEDGER_TIMEOUT': getattr(settings, 'SETTLEMENT_LEDGER_TIMEOUT', 10),

    # ==========================================
    # EARNINGS
    # ==========================================

    # partner_id of the account that receives company earnings.
    # When empty, earnings accrue as pending instead of being credited.
    'COMPANY_PARTNER_ID': getattr(settings, 'SETTLEMENT_COMPANY_PARTNER_ID', ''),
}


def get_settlement_setting(name):
    """
    Helper function to get a specific settlement setting
    """
    if name not in SETTLEMENT_SETTINGS:
        raise ValueError(f"Unknown setting: {name}")
    return SETTLEMENT_SETTINGS[name]

from django.utils.translation import gettext_lazy as _


# Partner roles
PARTNER_ROLE_ADMIN = 'admin'
PARTNER_ROLE_MASTER_DISTRIBUTOR = 'master_distributor'
PARTNER_ROLE_DISTRIBUTOR = 'distributor'
PARTNER_ROLE_RETAILER = 'retailer'

PARTNER_ROLES = (
    (PARTNER_ROLE_ADMIN, _('Admin')),
    (PARTNER_ROLE_MASTER_DISTRIBUTOR, _('Master distributor')),
    (PARTNER_ROLE_DISTRIBUTOR, _('Distributor')),
    (PARTNER_ROLE_RETAILER, _('Retailer')),
)

# Settlement modes a partner is allowed to use
SETTLEMENT_ALLOWED_T1 = 'T1'
SETTLEMENT_ALLOWED_T0_T1 = 'T0_T1'

SETTLEMENT_ALLOWED_MODES = (
    (SETTLEMENT_ALLOWED_T1, _('T+1 only')),
    (SETTLEMENT_ALLOWED_T0_T1, _('T+0 and T+1')),
)

# Scheme scopes
SCHEME_SCOPE_GLOBAL = 'global'
SCHEME_SCOPE_CUSTOM = 'custom'

SCHEME_SCOPES = (
    (SCHEME_SCOPE_GLOBAL, _('Global')),
    (SCHEME_SCOPE_CUSTOM, _('Custom')),
)

# Scheme statuses
SCHEME_STATUS_ACTIVE = 'active'
SCHEME_STATUS_INACTIVE = 'inactive'

SCHEME_STATUSES = (
    (SCHEME_STATUS_ACTIVE, _('Active')),
    (SCHEME_STATUS_INACTIVE, _('Inactive')),
)

# Payment modes
PAYMENT_MODE_CARD = 'CARD'
PAYMENT_MODE_UPI = 'UPI'

PAYMENT_MODES = (
    (PAYMENT_MODE_CARD, _('Card')),
    (PAYMENT_MODE_UPI, _('UPI')),
)

# Card types
CARD_TYPE_CREDIT = 'CREDIT'
CARD_TYPE_DEBIT = 'DEBIT'
CARD_TYPE_PREPAID = 'PREPAID'

CARD_TYPES = (
    (CARD_TYPE_CREDIT, _('Credit')),
    (CARD_TYPE_DEBIT, _('Debit')),
    (CARD_TYPE_PREPAID, _('Prepaid')),
)

# Card brands keyed by their separator-free upper-case spelling
BRAND_ALIASES = {
    'MASTERCARD': 'MASTERCARD',
    'MASTER': 'MASTERCARD',
    'MC': 'MASTERCARD',
    'VISA': 'VISA',
    'AMEX': 'AMEX',
    'AMERICANEXPRESS': 'AMEX',
    'RUPAY': 'RUPAY',
    'DINERS': 'DINERS',
    'DINERSCLUB': 'DINERS',
    'MAESTRO': 'MAESTRO',
    'JCB': 'JCB',
    'DISCOVER': 'DISCOVER',
}

# Settlement tiers
SETTLEMENT_TYPE_T0 = 'T0'
SETTLEMENT_TYPE_T1 = 'T1'

SETTLEMENT_TYPES = (
    (SETTLEMENT_TYPE_T0, _('T+0')),
    (SETTLEMENT_TYPE_T1, _('T+1')),
)

# Settlement mode written onto a settled transaction
SETTLEMENT_MODE_INSTACASH = 'INSTACASH'
SETTLEMENT_MODE_AUTO_T1 = 'AUTO_T1'

SETTLEMENT_MODES = (
    (SETTLEMENT_MODE_INSTACASH, _('InstaCash')),
    (SETTLEMENT_MODE_AUTO_T1, _('Auto T+1')),
)

# What started a batch
BATCH_TRIGGER_INSTANT = 'instant'
BATCH_TRIGGER_SCHEDULED = 'scheduled'

BATCH_TRIGGERS = (
    (BATCH_TRIGGER_INSTANT, _('Instant')),
    (BATCH_TRIGGER_SCHEDULED, _('Scheduled')),
)

# Batch statuses
BATCH_STATUS_PROCESSING = 'processing'
BATCH_STATUS_COMPLETED = 'completed'
BATCH_STATUS_PARTIAL = 'partial'
BATCH_STATUS_FAILED = 'failed'

BATCH_STATUSES = (
    (BATCH_STATUS_PROCESSING, _('Processing')),
    (BATCH_STATUS_COMPLETED, _('Completed')),
    (BATCH_STATUS_PARTIAL, _('Partial')),
    (BATCH_STATUS_FAILED, _('Failed')),
)

# Batch item statuses
ITEM_STATUS_PENDING = 'pending'
ITEM_STATUS_SETTLED = 'settled'
ITEM_STATUS_FAILED = 'failed'
ITEM_STATUS_SKIPPED = 'skipped'

ITEM_STATUSES = (
    (ITEM_STATUS_PENDING, _('Pending')),
    (ITEM_STATUS_SETTLED, _('Settled')),
    (ITEM_STATUS_FAILED, _('Failed')),
    (ITEM_STATUS_SKIPPED, _('Skipped')),
)

# Transaction display statuses that count as a captured payment
TRANSACTION_SUCCESS_STATUSES = ('SUCCESS', 'CAPTURED')

# Cron run statuses
RUN_STATUS_SUCCESS = 'success'
RUN_STATUS_PARTIAL = 'partial'
RUN_STATUS_FAILED = 'failed'

RUN_STATUSES = (
    (RUN_STATUS_SUCCESS, _('Success')),
    (RUN_STATUS_PARTIAL, _('Partial')),
    (RUN_STATUS_FAILED, _('Failed')),
)

# Ledger
WALLET_TYPE_PRIMARY = 'primary'

WALLET_TYPES = (
    (WALLET_TYPE_PRIMARY, _('Primary')),
)

LEDGER_TX_TYPE_POS_CREDIT = 'POS_CREDIT'
LEDGER_TX_TYPE_MARGIN_CREDIT = 'MARGIN_CREDIT'
LEDGER_TX_TYPE_EARNING_CREDIT = 'EARNING_CREDIT'

LEDGER_TX_TYPES = (
    (LEDGER_TX_TYPE_POS_CREDIT, _('POS credit')),
    (LEDGER_TX_TYPE_MARGIN_CREDIT, _('Distributor margin credit')),
    (LEDGER_TX_TYPE_EARNING_CREDIT, _('Company earning credit')),
)

# Earning accruals
ACCRUAL_BENEFICIARY_DISTRIBUTOR = 'distributor'
ACCRUAL_BENEFICIARY_COMPANY = 'company'

ACCRUAL_BENEFICIARIES = (
    (ACCRUAL_BENEFICIARY_DISTRIBUTOR, _('Distributor')),
    (ACCRUAL_BENEFICIARY_COMPANY, _('Company')),
)

ACCRUAL_STATUS_PENDING = 'pending'
ACCRUAL_STATUS_CREDITED = 'credited'

ACCRUAL_STATUSES = (
    (ACCRUAL_STATUS_PENDING, _('Pending')),
    (ACCRUAL_STATUS_CREDITED, _('Credited')),
)

# Scheduler states
SCHEDULER_STATE_IDLE = 'idle'
SCHEDULER_STATE_SCHEDULED = 'scheduled'
SCHEDULER_STATE_RUNNING = 'running'

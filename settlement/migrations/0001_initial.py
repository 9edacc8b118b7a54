# Initial schema of the settlement app

from decimal import Decimal
from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone
import djmoney.models.fields
import djmoney.settings
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        # ==========================================
        # PARTNER
        # ==========================================
        migrations.CreateModel(
            name='Partner',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated at')),
                ('partner_id', models.CharField(db_index=True, help_text='Public partner code', max_length=50, unique=True, verbose_name='Partner ID')),
                ('name', models.CharField(max_length=200, verbose_name='Name')),
                ('role', models.CharField(
                    choices=[
                        ('admin', 'Admin'),
                        ('master_distributor', 'Master distributor'),
                        ('distributor', 'Distributor'),
                        ('retailer', 'Retailer')
                    ],
                    db_index=True,
                    default='retailer',
                    max_length=30,
                    verbose_name='Role'
                )),
                ('is_active', models.BooleanField(db_index=True, default=True, verbose_name='Is active')),
                ('t1_settlement_paused', models.BooleanField(db_index=True, default=False, help_text='Paused partners are skipped by the T+1 sweep', verbose_name='T+1 settlement paused')),
                ('t1_settlement_paused_at', models.DateTimeField(blank=True, null=True, verbose_name='T+1 settlement paused at')),
                ('t1_settlement_paused_by', models.CharField(blank=True, max_length=100, null=True, verbose_name='T+1 settlement paused by')),
                ('settlement_mode_allowed', models.CharField(
                    choices=[('T1', 'T+1 only'), ('T0_T1', 'T+0 and T+1')],
                    db_index=True,
                    default='T1',
                    help_text='T0_T1 partners may request instant settlement',
                    max_length=10,
                    verbose_name='Settlement mode allowed'
                )),
                ('parent', models.ForeignKey(blank=True, help_text='Distributor of a retailer, master distributor of a distributor', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='children', to='settlement.partner', verbose_name='Parent')),
                ('user', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='partner', to=settings.AUTH_USER_MODEL, verbose_name='User')),
            ],
            options={
                'verbose_name': 'Partner',
                'verbose_name_plural': 'Partners',
                'ordering': ['partner_id'],
                'indexes': [models.Index(fields=['role', 'is_active'], name='partner_role_active_idx')],
            },
        ),

        # ==========================================
        # SCHEME
        # ==========================================
        migrations.CreateModel(
            name='Scheme',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated at')),
                ('name', models.CharField(blank=True, default='', max_length=200, verbose_name='Name')),
                ('scope', models.CharField(choices=[('global', 'Global'), ('custom', 'Custom')], db_index=True, default='global', max_length=10, verbose_name='Scope')),
                ('mode', models.CharField(choices=[('CARD', 'Card'), ('UPI', 'UPI')], db_index=True, default='CARD', max_length=10, verbose_name='Payment mode')),
                ('card_type', models.CharField(blank=True, choices=[('CREDIT', 'Credit'), ('DEBIT', 'Debit'), ('PREPAID', 'Prepaid')], help_text='Empty matches any card type', max_length=20, null=True, verbose_name='Card type')),
                ('brand_type', models.CharField(blank=True, help_text='Empty matches any brand', max_length=30, null=True, verbose_name='Brand')),
                ('card_classification', models.CharField(blank=True, help_text='Empty matches any classification', max_length=50, null=True, verbose_name='Card classification')),
                ('retailer_mdr_t1', models.DecimalField(decimal_places=4, max_digits=7, verbose_name='Retailer MDR T+1 (%)')),
                ('distributor_mdr_t1', models.DecimalField(decimal_places=4, max_digits=7, verbose_name='Distributor MDR T+1 (%)')),
                ('retailer_mdr_t0', models.DecimalField(decimal_places=4, max_digits=7, verbose_name='Retailer MDR T+0 (%)')),
                ('distributor_mdr_t0', models.DecimalField(decimal_places=4, max_digits=7, verbose_name='Distributor MDR T+0 (%)')),
                ('status', models.CharField(choices=[('active', 'Active'), ('inactive', 'Inactive')], db_index=True, default='active', max_length=10, verbose_name='Status')),
                ('effective_date', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Effective date')),
                ('owner_retailer', models.ForeignKey(blank=True, help_text='Required for custom schemes, empty for global ones', null=True, on_delete=django.db.models.deletion.PROTECT, related_name='custom_schemes', to='settlement.partner', verbose_name='Owner retailer')),
            ],
            options={
                'verbose_name': 'Scheme',
                'verbose_name_plural': 'Schemes',
                'ordering': ['-effective_date'],
                'indexes': [
                    models.Index(fields=['scope', 'mode', 'status'], name='scheme_scope_mode_idx'),
                    models.Index(fields=['owner_retailer', 'mode', 'status'], name='scheme_owner_mode_idx'),
                ],
            },
        ),

        # ==========================================
        # SETTLEMENT BATCH
        # ==========================================
        migrations.CreateModel(
            name='SettlementBatch',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated at')),
                ('settlement_type', models.CharField(choices=[('T0', 'T+0'), ('T1', 'T+1')], db_index=True, max_length=5, verbose_name='Settlement type')),
                ('trigger', models.CharField(choices=[('instant', 'Instant'), ('scheduled', 'Scheduled')], default='instant', max_length=20, verbose_name='Trigger')),
                ('status', models.CharField(
                    choices=[
                        ('processing', 'Processing'),
                        ('completed', 'Completed'),
                        ('partial', 'Partial'),
                        ('failed', 'Failed')
                    ],
                    db_index=True,
                    default='processing',
                    max_length=20,
                    verbose_name='Status'
                )),
                ('total_transactions', models.PositiveIntegerField(default=0, verbose_name='Total transactions')),
                ('total_gross_amount_currency', djmoney.models.fields.CurrencyField(choices=djmoney.settings.CURRENCY_CHOICES, default='INR', editable=False, max_length=3)),
                ('total_gross_amount', djmoney.models.fields.MoneyField(decimal_places=2, default=Decimal('0'), default_currency='INR', max_digits=19, verbose_name='Total gross amount')),
                ('total_mdr_amount', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=19, verbose_name='Total MDR amount')),
                ('total_net_amount_currency', djmoney.models.fields.CurrencyField(choices=djmoney.settings.CURRENCY_CHOICES, default='INR', editable=False, max_length=3)),
                ('total_net_amount', djmoney.models.fields.MoneyField(decimal_places=2, default=Decimal('0'), default_currency='INR', max_digits=19, verbose_name='Total net amount')),
                ('success_count', models.PositiveIntegerField(default=0, verbose_name='Success count')),
                ('failed_count', models.PositiveIntegerField(default=0, verbose_name='Failed count')),
                ('wallet_credit_id', models.CharField(blank=True, max_length=100, null=True, verbose_name='Wallet credit ID')),
                ('failure_reason', models.TextField(blank=True, null=True, verbose_name='Failure reason')),
                ('metadata', models.JSONField(blank=True, default=dict, verbose_name='Metadata')),
                ('completed_at', models.DateTimeField(blank=True, null=True, verbose_name='Completed at')),
                ('retailer', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='settlement_batches', to='settlement.partner', verbose_name='Retailer')),
            ],
            options={
                'verbose_name': 'Settlement batch',
                'verbose_name_plural': 'Settlement batches',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['retailer', 'created_at'], name='batch_retailer_created_idx'),
                    models.Index(fields=['status', 'created_at'], name='batch_status_created_idx'),
                ],
            },
        ),

        # ==========================================
        # POS TRANSACTION
        # ==========================================
        migrations.CreateModel(
            name='PosTransaction',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated at')),
                ('txn_id', models.CharField(db_index=True, max_length=100, unique=True, verbose_name='Transaction ID')),
                ('amount_currency', djmoney.models.fields.CurrencyField(choices=djmoney.settings.CURRENCY_CHOICES, default='INR', editable=False, max_length=3)),
                ('amount', djmoney.models.fields.MoneyField(decimal_places=2, default_currency='INR', max_digits=19, verbose_name='Amount')),
                ('payment_mode', models.CharField(blank=True, max_length=50, null=True, verbose_name='Payment mode')),
                ('card_type', models.CharField(blank=True, max_length=50, null=True, verbose_name='Card type')),
                ('card_brand', models.CharField(blank=True, max_length=50, null=True, verbose_name='Card brand')),
                ('card_classification', models.CharField(blank=True, max_length=50, null=True, verbose_name='Card classification')),
                ('display_status', models.CharField(db_index=True, max_length=30, verbose_name='Status')),
                ('transaction_time', models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name='Transaction time')),
                ('wallet_credited', models.BooleanField(db_index=True, default=False, verbose_name='Wallet credited')),
                ('wallet_credit_id', models.CharField(blank=True, max_length=100, null=True, verbose_name='Wallet credit ID')),
                ('settlement_mode', models.CharField(blank=True, choices=[('INSTACASH', 'InstaCash'), ('AUTO_T1', 'Auto T+1')], db_index=True, max_length=20, null=True, verbose_name='Settlement mode')),
                ('mdr_rate', models.DecimalField(blank=True, decimal_places=4, max_digits=7, null=True, verbose_name='MDR rate (%)')),
                ('mdr_amount', models.DecimalField(blank=True, decimal_places=4, max_digits=19, null=True, verbose_name='MDR amount')),
                ('net_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=19, null=True, verbose_name='Net amount')),
                ('mdr_scheme_type', models.CharField(blank=True, choices=[('global', 'Global'), ('custom', 'Custom')], max_length=10, null=True, verbose_name='MDR scheme type')),
                ('settled_at', models.DateTimeField(blank=True, null=True, verbose_name='Settled at')),
                ('retailer', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='pos_transactions', to='settlement.partner', verbose_name='Retailer')),
                ('mdr_scheme', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='transactions', to='settlement.scheme', verbose_name='MDR scheme')),
                ('settlement_batch', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='settled_transactions', to='settlement.settlementbatch', verbose_name='Settlement batch')),
            ],
            options={
                'verbose_name': 'POS transaction',
                'verbose_name_plural': 'POS transactions',
                'ordering': ['-transaction_time'],
                'indexes': [
                    models.Index(fields=['retailer', 'transaction_time'], name='pos_retailer_time_idx'),
                    models.Index(fields=['wallet_credited', 'transaction_time'], name='pos_credited_time_idx'),
                ],
            },
        ),

        # ==========================================
        # BATCH ITEM
        # ==========================================
        migrations.CreateModel(
            name='BatchItem',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated at')),
                ('gross_amount_currency', djmoney.models.fields.CurrencyField(choices=djmoney.settings.CURRENCY_CHOICES, default='INR', editable=False, max_length=3)),
                ('gross_amount', djmoney.models.fields.MoneyField(decimal_places=2, default_currency='INR', max_digits=19, verbose_name='Gross amount')),
                ('mdr_rate', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=7, verbose_name='Retailer MDR rate (%)')),
                ('distributor_mdr_rate', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=7, verbose_name='Distributor MDR rate (%)')),
                ('mdr_amount', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=19, verbose_name='MDR amount')),
                ('distributor_fee', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=19, verbose_name='Distributor fee')),
                ('distributor_margin', models.DecimalField(decimal_places=4, default=Decimal('0'), max_digits=19, verbose_name='Distributor margin')),
                ('net_amount_currency', djmoney.models.fields.CurrencyField(choices=djmoney.settings.CURRENCY_CHOICES, default='INR', editable=False, max_length=3)),
                ('net_amount', djmoney.models.fields.MoneyField(decimal_places=2, default=Decimal('0'), default_currency='INR', max_digits=19, verbose_name='Net amount')),
                ('status', models.CharField(
                    choices=[
                        ('pending', 'Pending'),
                        ('settled', 'Settled'),
                        ('failed', 'Failed'),
                        ('skipped', 'Skipped')
                    ],
                    db_index=True,
                    default='pending',
                    max_length=20,
                    verbose_name='Status'
                )),
                ('error_message', models.TextField(blank=True, null=True, verbose_name='Error message')),
                ('scheme_type', models.CharField(blank=True, choices=[('global', 'Global'), ('custom', 'Custom')], max_length=10, null=True, verbose_name='Scheme type')),
                ('batch', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='settlement.settlementbatch', verbose_name='Batch')),
                ('transaction', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='batch_items', to='settlement.postransaction', verbose_name='Transaction')),
                ('scheme', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='batch_items', to='settlement.scheme', verbose_name='Scheme')),
            ],
            options={
                'verbose_name': 'Batch item',
                'verbose_name_plural': 'Batch items',
                'ordering': ['created_at'],
                'indexes': [models.Index(fields=['transaction', 'status'], name='item_txn_status_idx')],
            },
        ),

        # ==========================================
        # CRON SETTINGS
        # ==========================================
        migrations.CreateModel(
            name='CronSettings',
            fields=[
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated at')),
                ('id', models.PositiveSmallIntegerField(default=1, editable=False, primary_key=True, serialize=False)),
                ('schedule_hour', models.PositiveSmallIntegerField(default=7, help_text='0-23, in the configured timezone', verbose_name='Hour')),
                ('schedule_minute', models.PositiveSmallIntegerField(default=0, help_text='0-59', verbose_name='Minute')),
                ('timezone', models.CharField(default='Asia/Kolkata', max_length=64, verbose_name='Timezone')),
                ('is_enabled', models.BooleanField(default=True, verbose_name='Enabled')),
                ('updated_by', models.CharField(blank=True, max_length=100, null=True, verbose_name='Updated by')),
                ('last_run_at', models.DateTimeField(blank=True, null=True, verbose_name='Last run at')),
                ('last_run_status', models.CharField(blank=True, choices=[('success', 'Success'), ('partial', 'Partial'), ('failed', 'Failed')], max_length=10, null=True, verbose_name='Last run status')),
                ('last_run_message', models.TextField(blank=True, null=True, verbose_name='Last run message')),
                ('last_run_processed', models.PositiveIntegerField(default=0, verbose_name='Last run processed')),
                ('last_run_failed', models.PositiveIntegerField(default=0, verbose_name='Last run failed')),
            ],
            options={
                'verbose_name': 'T+1 cron settings',
                'verbose_name_plural': 'T+1 cron settings',
            },
        ),

        # ==========================================
        # WALLET AND LEDGER
        # ==========================================
        migrations.CreateModel(
            name='Wallet',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated at')),
                ('wallet_type', models.CharField(choices=[('primary', 'Primary')], default='primary', max_length=20, verbose_name='Wallet type')),
                ('balance_currency', djmoney.models.fields.CurrencyField(choices=djmoney.settings.CURRENCY_CHOICES, default='INR', editable=False, max_length=3)),
                ('balance', djmoney.models.fields.MoneyField(decimal_places=2, default=Decimal('0'), default_currency='INR', max_digits=19, verbose_name='Balance')),
                ('is_locked', models.BooleanField(default=False, verbose_name='Is locked')),
                ('partner', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='wallets', to='settlement.partner', verbose_name='Partner')),
            ],
            options={
                'verbose_name': 'Wallet',
                'verbose_name_plural': 'Wallets',
                'constraints': [models.UniqueConstraint(fields=('partner', 'wallet_type'), name='unique_partner_wallet_type')],
            },
        ),
        migrations.CreateModel(
            name='LedgerEntry',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated at')),
                ('role', models.CharField(
                    choices=[
                        ('admin', 'Admin'),
                        ('master_distributor', 'Master distributor'),
                        ('distributor', 'Distributor'),
                        ('retailer', 'Retailer')
                    ],
                    max_length=30,
                    verbose_name='Role'
                )),
                ('tx_type', models.CharField(
                    choices=[
                        ('POS_CREDIT', 'POS credit'),
                        ('MARGIN_CREDIT', 'Distributor margin credit'),
                        ('EARNING_CREDIT', 'Company earning credit')
                    ],
                    max_length=30,
                    verbose_name='Transaction type'
                )),
                ('service_type', models.CharField(default='POS', max_length=30, verbose_name='Service type')),
                ('credit_currency', djmoney.models.fields.CurrencyField(choices=djmoney.settings.CURRENCY_CHOICES, default='INR', editable=False, max_length=3)),
                ('credit', djmoney.models.fields.MoneyField(decimal_places=2, default_currency='INR', max_digits=19, verbose_name='Credit')),
                ('reference_id', models.CharField(db_index=True, max_length=100, unique=True, verbose_name='Reference ID')),
                ('transaction_ref', models.CharField(blank=True, max_length=100, null=True, verbose_name='Transaction reference')),
                ('balance_after_currency', djmoney.models.fields.CurrencyField(choices=djmoney.settings.CURRENCY_CHOICES, default='INR', editable=False, max_length=3)),
                ('balance_after', djmoney.models.fields.MoneyField(decimal_places=2, default_currency='INR', max_digits=19, verbose_name='Balance after')),
                ('remarks', models.TextField(blank=True, default='', verbose_name='Remarks')),
                ('wallet', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='entries', to='settlement.wallet', verbose_name='Wallet')),
            ],
            options={
                'verbose_name': 'Ledger entry',
                'verbose_name_plural': 'Ledger entries',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='EarningAccrual',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False, verbose_name='ID')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='Created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='Updated at')),
                ('beneficiary_role', models.CharField(choices=[('distributor', 'Distributor'), ('company', 'Company')], max_length=20, verbose_name='Beneficiary role')),
                ('amount', models.DecimalField(decimal_places=4, max_digits=19, verbose_name='Amount')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('credited', 'Credited')], db_index=True, default='pending', max_length=20, verbose_name='Status')),
                ('ledger_entry_id', models.CharField(blank=True, max_length=100, null=True, verbose_name='Ledger entry ID')),
                ('credited_at', models.DateTimeField(blank=True, null=True, verbose_name='Credited at')),
                ('batch', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='accruals', to='settlement.settlementbatch', verbose_name='Batch')),
                ('beneficiary', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='earning_accruals', to='settlement.partner', verbose_name='Beneficiary')),
            ],
            options={
                'verbose_name': 'Earning accrual',
                'verbose_name_plural': 'Earning accruals',
                'constraints': [models.UniqueConstraint(fields=('batch', 'beneficiary_role'), name='unique_batch_beneficiary_role')],
            },
        ),
    ]

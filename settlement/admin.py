from django.contrib import admin
from django.contrib import messages
from django.utils.translation import gettext_lazy as _

from settlement.models import (
    Partner, Scheme, PosTransaction, SettlementBatch, BatchItem,
    CronSettings, Wallet, LedgerEntry, EarningAccrual
)
from settlement.services.settlement_service import SettlementService
from settlement.services.scheduler import get_scheduler
from settlement.settings import get_settlement_setting


class PartnerAdmin(admin.ModelAdmin):
    """Admin for the Partner model"""

    list_display = (
        'partner_id', 'name', 'role', 'parent', 'settlement_mode_allowed',
        't1_settlement_paused', 'is_active'
    )
    list_filter = ('role', 'settlement_mode_allowed', 't1_settlement_paused', 'is_active')
    search_fields = ('partner_id', 'name')
    raw_id_fields = ('parent', 'user')
    readonly_fields = ('t1_settlement_paused_at', 't1_settlement_paused_by', 'created_at', 'updated_at')
    actions = ['pause_t1', 'resume_t1']

    def pause_t1(self, request, queryset):
        """Pause T+1 settlement for selected partners"""
        for partner in queryset:
            partner.pause_t1_settlement(paused_by=str(request.user.pk))
        messages.success(request, _("T+1 settlement paused for {} partners").format(queryset.count()))
    pause_t1.short_description = _("Pause T+1 settlement")

    def resume_t1(self, request, queryset):
        """Resume T+1 settlement for selected partners"""
        for partner in queryset:
            partner.resume_t1_settlement()
        messages.success(request, _("T+1 settlement resumed for {} partners").format(queryset.count()))
    resume_t1.short_description = _("Resume T+1 settlement")


class SchemeAdmin(admin.ModelAdmin):
    """Admin for the Scheme model. Schemes cannot be deleted."""

    list_display = (
        'id', 'scope', 'owner_retailer', 'mode', 'card_type', 'brand_type',
        'card_classification', 'retailer_mdr_t1', 'distributor_mdr_t1',
        'retailer_mdr_t0', 'distributor_mdr_t0', 'status', 'effective_date'
    )
    list_filter = ('scope', 'mode', 'card_type', 'status')
    search_fields = ('name', 'brand_type', 'card_classification', 'owner_retailer__partner_id')
    raw_id_fields = ('owner_retailer',)
    actions = ['deactivate_schemes']

    def has_delete_permission(self, request, obj=None):
        return False

    def deactivate_schemes(self, request, queryset):
        """Deactivate selected schemes"""
        for scheme in queryset:
            scheme.deactivate()
        messages.success(request, _("{} schemes deactivated").format(queryset.count()))
    deactivate_schemes.short_description = _("Deactivate selected schemes")


class PosTransactionAdmin(admin.ModelAdmin):
    """Admin for the PosTransaction model"""

    list_display = (
        'txn_id', 'retailer', 'formatted_amount', 'payment_mode', 'card_brand',
        'display_status', 'transaction_time', 'wallet_credited', 'settlement_mode'
    )
    list_filter = ('display_status', 'wallet_credited', 'settlement_mode', 'payment_mode')
    search_fields = ('txn_id', 'retailer__partner_id')
    raw_id_fields = ('retailer', 'mdr_scheme', 'settlement_batch')
    readonly_fields = (
        'wallet_credited', 'wallet_credit_id', 'settlement_mode', 'mdr_rate',
        'mdr_amount', 'net_amount', 'mdr_scheme', 'mdr_scheme_type',
        'settlement_batch', 'settled_at', 'created_at', 'updated_at'
    )

    def formatted_amount(self, obj):
        """Format amount for display"""
        return f"{obj.amount.amount} {obj.amount.currency.code}"
    formatted_amount.short_description = _("Amount")


class BatchItemInline(admin.TabularInline):
    model = BatchItem
    extra = 0
    can_delete = False
    fields = (
        'transaction', 'gross_amount', 'mdr_rate', 'mdr_amount',
        'net_amount', 'status', 'error_message', 'scheme_type'
    )
    readonly_fields = fields


class SettlementBatchAdmin(admin.ModelAdmin):
    """Admin for the SettlementBatch model"""

    list_display = (
        'id', 'retailer', 'settlement_type', 'trigger', 'status',
        'total_transactions', 'success_count', 'failed_count',
        'formatted_net', 'created_at'
    )
    list_filter = ('settlement_type', 'trigger', 'status', 'created_at')
    search_fields = ('id', 'retailer__partner_id', 'wallet_credit_id')
    readonly_fields = (
        'retailer', 'settlement_type', 'trigger', 'status', 'total_transactions',
        'total_gross_amount', 'total_mdr_amount', 'total_net_amount',
        'success_count', 'failed_count', 'wallet_credit_id', 'failure_reason',
        'metadata', 'completed_at', 'created_at', 'updated_at'
    )
    inlines = [BatchItemInline]
    actions = ['repair_write_backs']

    def has_add_permission(self, request):
        return False

    def formatted_net(self, obj):
        return f"{obj.total_net_amount.amount} {obj.total_net_amount.currency.code}"
    formatted_net.short_description = _("Net amount")

    def repair_write_backs(self, request, queryset):
        """Re-apply failed transaction write-backs (respects USE_CELERY setting)"""
        if get_settlement_setting('USE_CELERY'):
            from settlement.tasks import repair_write_backs_task

            repair_write_backs_task.delay()
            messages.success(request, _("Write-back repair task queued. Check Celery logs for progress."))
            return

        service = SettlementService()
        recovered = service.recover_stale_batches()
        repaired = service.repair_write_backs()
        messages.info(
            request,
            _("Recovered {} interrupted batches, repaired {} transaction write-backs").format(recovered, repaired)
        )
    repair_write_backs.short_description = _("Repair transaction write-backs")


class CronSettingsAdmin(admin.ModelAdmin):
    """Admin for the T+1 cron settings"""

    list_display = (
        '__str__', 'is_enabled', 'last_run_at', 'last_run_status',
        'last_run_processed', 'last_run_failed'
    )
    readonly_fields = (
        'last_run_at', 'last_run_status', 'last_run_message',
        'last_run_processed', 'last_run_failed', 'updated_by', 'updated_at'
    )
    actions = ['run_now']

    def has_add_permission(self, request):
        return not CronSettings.objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False

    def save_model(self, request, obj, form, change):
        obj.updated_by = str(request.user.pk)
        super().save_model(request, obj, form, change)

    def run_now(self, request, queryset):
        """Run the T+1 sweep now"""
        result = get_scheduler().trigger(source=f"admin {request.user.pk}")
        if result.started:
            messages.success(request, result.message)
        else:
            messages.warning(request, result.message)
    run_now.short_description = _("Run T+1 settlement now")


class WalletAdmin(admin.ModelAdmin):
    """Admin for the Wallet model"""

    list_display = ('partner', 'wallet_type', 'formatted_balance', 'is_locked')
    list_filter = ('wallet_type', 'is_locked')
    search_fields = ('partner__partner_id', 'partner__name')
    readonly_fields = ('partner', 'balance', 'created_at', 'updated_at')

    def formatted_balance(self, obj):
        """Format balance for display"""
        return f"{obj.balance.amount} {obj.balance.currency.code}"
    formatted_balance.short_description = _("Balance")


class LedgerEntryAdmin(admin.ModelAdmin):
    """Admin for the LedgerEntry model. Entries are read-only."""

    list_display = ('reference_id', 'wallet', 'tx_type', 'credit', 'balance_after', 'created_at')
    list_filter = ('tx_type', 'role')
    search_fields = ('reference_id', 'transaction_ref')

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class EarningAccrualAdmin(admin.ModelAdmin):
    """Admin for the EarningAccrual model"""

    list_display = ('batch', 'beneficiary_role', 'beneficiary', 'amount', 'status', 'credited_at')
    list_filter = ('beneficiary_role', 'status')
    readonly_fields = ('batch', 'amount', 'ledger_entry_id', 'credited_at')
    actions = ['credit_pending']

    def credit_pending(self, request, queryset):
        """Credit every pending accrual that has a beneficiary (respects USE_CELERY setting)"""
        if get_settlement_setting('USE_CELERY'):
            from settlement.tasks import credit_pending_accruals_task

            credit_pending_accruals_task.delay()
            messages.success(request, _("Accrual credit task queued. Check Celery logs for progress."))
            return

        credited = SettlementService().credit_pending_accruals()
        messages.info(request, _("Credited {} pending accruals").format(credited))
    credit_pending.short_description = _("Credit pending accruals")


admin.site.register(Partner, PartnerAdmin)
admin.site.register(Scheme, SchemeAdmin)
admin.site.register(PosTransaction, PosTransactionAdmin)
admin.site.register(SettlementBatch, SettlementBatchAdmin)
admin.site.register(CronSettings, CronSettingsAdmin)
admin.site.register(Wallet, WalletAdmin)
admin.site.register(LedgerEntry, LedgerEntryAdmin)
admin.site.register(EarningAccrual, EarningAccrualAdmin)

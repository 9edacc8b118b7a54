from django.utils.translation import gettext_lazy as _


class SettlementError(Exception):
    """Base exception for all settlement related errors"""
    pass


class InvalidAmount(SettlementError):
    """Exception raised when a transaction amount is zero or negative"""
    def __init__(self, amount=None):
        message = _("Invalid amount")
        if amount is not None:
            message = _("Invalid amount: {amount}").format(amount=amount)
        super().__init__(message)
        self.amount = amount


class SchemeError(SettlementError):
    """Exception raised when a scheme is misused or misconfigured"""
    def __init__(self, message=None, scheme_id=None):
        msg = _("Scheme error")
        if message:
            msg = _("Scheme error: {message}").format(message=message)
        if scheme_id:
            msg = _("{msg} (Scheme ID: {scheme_id})").format(msg=msg, scheme_id=scheme_id)
        super().__init__(msg)
        self.scheme_id = scheme_id


class SchemeNotFound(SettlementError):
    """Exception raised when no active scheme matches a transaction"""
    def __init__(self, mode=None, card_type=None, brand_type=None, card_classification=None):
        message = _(
            "No active scheme found for mode: {mode}, card_type: {card_type}, "
            "brand_type: {brand_type}, card_classification: {classification}"
        ).format(
            mode=mode or 'N/A',
            card_type=card_type or 'N/A',
            brand_type=brand_type or 'N/A',
            classification=card_classification or 'N/A'
        )
        super().__init__(message)


class NegativeMarginConfig(SchemeError):
    """Exception raised when a scheme's retailer MDR is below its distributor MDR"""
    def __init__(self, retailer_mdr=None, distributor_mdr=None, scheme_id=None):
        message = _("Distributor margin cannot be negative. Retailer MDR must be >= Distributor MDR")
        if retailer_mdr is not None and distributor_mdr is not None:
            message = _(
                "Distributor margin cannot be negative: retailer MDR {retailer_mdr}% "
                "is below distributor MDR {distributor_mdr}%"
            ).format(retailer_mdr=retailer_mdr, distributor_mdr=distributor_mdr)
        super().__init__(message, scheme_id)


class InvalidSettlementRequest(SettlementError):
    """Exception raised when a settlement request is malformed"""
    def __init__(self, message=None):
        msg = _("Invalid settlement request")
        if message:
            msg = _("Invalid settlement request: {message}").format(message=message)
        super().__init__(msg)


class SettlementNotAllowed(SettlementError):
    """Exception raised when a partner may not use the requested settlement mode"""
    def __init__(self, partner=None, settlement_type=None):
        message = _("Settlement not allowed")
        if partner is not None and settlement_type:
            message = _("{settlement_type} settlement is not enabled for partner {partner}").format(
                settlement_type=settlement_type,
                partner=getattr(partner, 'partner_id', partner)
            )
        super().__init__(message)


class DuplicateSettlementAttempt(SettlementError):
    """Exception raised when transactions are already settled or in flight"""
    def __init__(self, transaction_ids=None):
        self.transaction_ids = [str(tid) for tid in (transaction_ids or [])]
        message = _("Duplicate settlement attempt")
        if self.transaction_ids:
            message = _(
                "{count} transaction(s) already settled or in a pending batch: {ids}"
            ).format(count=len(self.transaction_ids), ids=', '.join(self.transaction_ids))
        super().__init__(message)


class LedgerCreditFailure(SettlementError):
    """Exception raised when the ledger refuses or fails to record a credit"""
    def __init__(self, message=None, reference_id=None):
        msg = _("Ledger credit failed")
        if message:
            msg = _("Ledger credit failed: {message}").format(message=message)
        if reference_id:
            msg = _("{msg} (Reference: {reference_id})").format(msg=msg, reference_id=reference_id)
        super().__init__(msg)
        self.reference_id = reference_id


class WriteBackFailure(SettlementError):
    """Exception raised when settlement fields cannot be written onto a transaction"""
    def __init__(self, message=None, transaction_id=None):
        msg = _("Settlement write-back failed")
        if message:
            msg = _("Settlement write-back failed: {message}").format(message=message)
        if transaction_id:
            msg = _("{msg} (Transaction ID: {transaction_id})").format(
                msg=msg,
                transaction_id=transaction_id
            )
        super().__init__(msg)
        self.transaction_id = transaction_id

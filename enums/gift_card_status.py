from enum import Enum


class GiftCardStatus(str, Enum):
    PENDING = "pending"                        # Issued, not yet activated
    ACTIVE = "active"                          # Full balance available
    PARTIALLY_REDEEMED = "partially_redeemed"  # Some balance spent
    REDEEMED = "redeemed"                      # Balance is zero
    VOID = "void"                              # Cancelled by admin


class GiftCardTransactionType(str, Enum):
    ISSUE = "issue"
    REDEEM = "redeem"
    ADJUST = "adjust"
    VOID = "void"

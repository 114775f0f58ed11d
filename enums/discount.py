from enum import Enum


class DiscountSource(str, Enum):
    """
    Where a discount candidate came from.

    Declaration order is the tie-break order used when two candidates
    have the same amount: the most specific source wins.
    """

    PRODUCT = "product"
    ORDER_THRESHOLD = "order_threshold"
    PROMO = "promo"
    VERIFICATION = "verification"

    @property
    def priority(self) -> int:
        return list(DiscountSource).index(self)


class DiscountKind(str, Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"


class DiscountTarget(str, Enum):
    GLOBAL = "global"
    PRODUCT = "product"
    CATEGORY = "category"
    PRODUCT_TYPE = "product_type"


class DiscountStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    USED = "used"  # once-only rule consumed by an order


class PromoCodeRejection(str, Enum):
    NOT_FOUND = "not_found"
    INACTIVE = "inactive"
    ALREADY_USED = "already_used"
    NOT_STARTED = "not_started"
    EXPIRED = "expired"
    AMOUNT_OUT_OF_RANGE = "amount_out_of_range"
    NOT_APPLICABLE = "not_applicable"

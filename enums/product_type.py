from enum import Enum


class ProductType(str, Enum):
    """
    Product families sold by the store.

    Discount rules can target a whole family (target=product_type).
    Gift cards are never discounted regardless of rule configuration.
    """

    AIR_FILTER = "air-filter"
    WATER_FILTER = "water-filter"
    REFRIGERATOR_FILTER = "refrigerator-filter"
    HUMIDIFIER_FILTER = "humidifier-filter"
    POOL_FILTER = "pool-filter"
    GIFT_CARD = "gift-card"
    ACCESSORY = "accessory"
    OTHER = "other"

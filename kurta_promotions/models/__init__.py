from kurta_promotions.models.promotion import (
    Promotion,
    PromotionTarget,
    PromotionExclusion,
    PromotionTier,
    PromotionBxgyRule,
)
from kurta_promotions.models.catalog import (
    ProductCategory,
    ProductCollection,
    CustomerSegmentMembership,
    Order,
    Product,
)

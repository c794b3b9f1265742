"""Schema package – re-exports all public symbols for convenient imports."""

from __future__ import annotations

from storefront.backend.schemas.accounts import (
    Address,
    AddressFormIn,
    AddressIn,
    Company,
    CompanyStatus,
    CredentialsIn,
    OAuthCallbackIn,
    ProfileCompletionIn,
    ProfileOut,
    RegistrationIn,
    SessionOut,
    ShippingAddress,
    UserProfile,
)
from storefront.backend.schemas.catalog import (
    Category,
    DeliveryCheckOut,
    Nutrient,
    Product,
    ProductCard,
    ProductDetail,
    ProductUserState,
    Review,
    ReviewIn,
    ReviewSummary,
)
from storefront.backend.schemas.common import ChangeEvent, HealthOut, MessageOut
from storefront.backend.schemas.dashboard import (
    DashboardOut,
    DashboardStats,
    LowStockProduct,
    ProductFormData,
    SellingProduct,
)
from storefront.backend.schemas.orders import (
    CartAddIn,
    CartLine,
    CartOut,
    CheckoutCompleteIn,
    CheckoutIn,
    CheckoutItem,
    CheckoutResultOut,
    CheckoutTotals,
    FavoriteItem,
    OrderItem,
    OrderItemProduct,
    OrderOut,
    OrderStatus,
    PaymentOut,
    QuantityIn,
    ResolvedOrderItem,
)

__all__ = [
    "Address",
    "AddressFormIn",
    "AddressIn",
    "CartAddIn",
    "CartLine",
    "CartOut",
    "Category",
    "ChangeEvent",
    "CheckoutCompleteIn",
    "CheckoutIn",
    "CheckoutItem",
    "CheckoutResultOut",
    "CheckoutTotals",
    "Company",
    "CompanyStatus",
    "CredentialsIn",
    "DashboardOut",
    "DashboardStats",
    "DeliveryCheckOut",
    "FavoriteItem",
    "HealthOut",
    "LowStockProduct",
    "MessageOut",
    "Nutrient",
    "OAuthCallbackIn",
    "OrderItem",
    "OrderItemProduct",
    "OrderOut",
    "OrderStatus",
    "PaymentOut",
    "Product",
    "ProductCard",
    "ProductDetail",
    "ProductFormData",
    "ProductUserState",
    "ProfileCompletionIn",
    "ProfileOut",
    "QuantityIn",
    "RegistrationIn",
    "ResolvedOrderItem",
    "Review",
    "ReviewIn",
    "ReviewSummary",
    "SellingProduct",
    "SessionOut",
    "ShippingAddress",
    "UserProfile",
]

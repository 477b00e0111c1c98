"""
Permission Constants and Role Mapping

WHY: Centralized permission definitions ensure consistency across the routes.
Roles and their grants are owned by the upstream identity service; this map
mirrors them so the API can check capabilities without a round trip.

DESIGN PRINCIPLES:
- Permissions are granular (one action per permission)
- SUPER_ADMIN has every permission
- Services never check roles; only route decorators do
"""

from .models.catalog import ROLE_ADMIN, ROLE_CASHIER, ROLE_SUPER_ADMIN, ROLE_WAREHOUSE_MANAGER


# -- CUSTOMERS --
MENU_CUSTOMER = "menu_customer"
CREATE_CUSTOMER = "create_customer"
DETAIL_CUSTOMER = "detail_customer"
EDIT_CUSTOMER = "edit_customer"
DELETE_CUSTOMER = "delete_customer"

# -- UNIT QUANTITIES --
MENU_UNIT_QUANTITY = "menu_unit_quantity"
CREATE_UNIT_QUANTITY = "create_unit_quantity"
DETAIL_UNIT_QUANTITY = "detail_unit_quantity"
EDIT_UNIT_QUANTITY = "edit_unit_quantity"
DELETE_UNIT_QUANTITY = "delete_unit_quantity"

# -- PRODUCTS --
MENU_PRODUCT = "menu_product"
CREATE_PRODUCT = "create_product"
DETAIL_PRODUCT = "detail_product"
EDIT_PRODUCT = "edit_product"
DELETE_PRODUCT = "delete_product"

# -- TAXES --
MENU_TAX = "menu_tax"
CREATE_TAX = "create_tax"
DETAIL_TAX = "detail_tax"
EDIT_TAX = "edit_tax"
DELETE_TAX = "delete_tax"

# -- INVENTORY --
MENU_INVENTORY = "menu_inventory"
MANIPULATE_INVENTORY = "manipulate_inventory"
DETAIL_INVENTORY = "detail_inventory"

# -- TRANSACTIONS --
MENU_TRANSACTION = "menu_transaction"
CREATE_TRANSACTION = "create_transaction"
DETAIL_TRANSACTION = "detail_transaction"
DASHBOARD_TRANSACTION = "dashboard_transaction"

# -- PAYMENTS --
MENU_PAYMENT = "menu_payment"
CREATE_PAYMENT = "create_payment"
DETAIL_PAYMENT = "detail_payment"
DASHBOARD_PAYMENT = "dashboard_payment"

# -- FINANCE --
DASHBOARD_FINANCE = "dashboard_finance"


ALL_PERMISSIONS = [
    MENU_CUSTOMER,
    CREATE_CUSTOMER,
    DETAIL_CUSTOMER,
    EDIT_CUSTOMER,
    DELETE_CUSTOMER,
    MENU_UNIT_QUANTITY,
    CREATE_UNIT_QUANTITY,
    DETAIL_UNIT_QUANTITY,
    EDIT_UNIT_QUANTITY,
    DELETE_UNIT_QUANTITY,
    MENU_PRODUCT,
    CREATE_PRODUCT,
    DETAIL_PRODUCT,
    EDIT_PRODUCT,
    DELETE_PRODUCT,
    MENU_TAX,
    CREATE_TAX,
    DETAIL_TAX,
    EDIT_TAX,
    DELETE_TAX,
    MENU_INVENTORY,
    MANIPULATE_INVENTORY,
    DETAIL_INVENTORY,
    MENU_TRANSACTION,
    CREATE_TRANSACTION,
    DETAIL_TRANSACTION,
    DASHBOARD_TRANSACTION,
    MENU_PAYMENT,
    CREATE_PAYMENT,
    DETAIL_PAYMENT,
    DASHBOARD_PAYMENT,
    DASHBOARD_FINANCE,
]


ROLE_PERMISSIONS = {
    ROLE_SUPER_ADMIN: set(ALL_PERMISSIONS),
    ROLE_ADMIN: set(ALL_PERMISSIONS),
    ROLE_WAREHOUSE_MANAGER: {
        MENU_UNIT_QUANTITY,
        CREATE_UNIT_QUANTITY,
        DETAIL_UNIT_QUANTITY,
        EDIT_UNIT_QUANTITY,
        MENU_PRODUCT,
        CREATE_PRODUCT,
        DETAIL_PRODUCT,
        EDIT_PRODUCT,
        MENU_INVENTORY,
        MANIPULATE_INVENTORY,
        DETAIL_INVENTORY,
        MENU_TRANSACTION,
        DETAIL_TRANSACTION,
    },
    ROLE_CASHIER: {
        MENU_CUSTOMER,
        CREATE_CUSTOMER,
        DETAIL_CUSTOMER,
        MENU_PRODUCT,
        DETAIL_PRODUCT,
        MENU_UNIT_QUANTITY,
        DETAIL_UNIT_QUANTITY,
        MENU_TAX,
        DETAIL_TAX,
        MENU_TRANSACTION,
        CREATE_TRANSACTION,
        DETAIL_TRANSACTION,
        MENU_PAYMENT,
        CREATE_PAYMENT,
        DETAIL_PAYMENT,
        MENU_INVENTORY,
    },
}


def role_has_permission(role: str | None, permission_code: str) -> bool:
    return permission_code in ROLE_PERMISSIONS.get(role or "", set())

from restaurant_api.models.business import Business
from restaurant_api.models.business_owner import BusinessOwner
from restaurant_api.models.customer import Customer
from restaurant_api.models.product import Product
from restaurant_api.models.category import Category
from restaurant_api.models.inventory import InventoryItem
from restaurant_api.models.table import RestaurantTable
from restaurant_api.models.order import Order
from restaurant_api.models.order_item import OrderItem
from restaurant_api.models.bill import Bill
from restaurant_api.models.coupon import Coupon
from restaurant_api.models.plan import Plan
from restaurant_api.models.password_reset import PasswordReset, PasswordResetAttempt
from restaurant_api.models.whatsapp_credential import WhatsAppCredential
from restaurant_api.models.tenant_sequence import TenantSequence

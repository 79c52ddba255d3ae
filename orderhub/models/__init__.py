from orderhub.models.menu_item import MenuItem
from orderhub.models.order import Order
from orderhub.models.order_item import OrderItem
from orderhub.models.kitchen_token import KitchenToken
from orderhub.models.bill import Bill
from orderhub.models.activity import Activity

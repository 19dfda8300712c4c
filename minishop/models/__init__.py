from minishop.models.user import User
from minishop.models.category import Category
from minishop.models.product import Product
from minishop.models.customer import Customer
from minishop.models.order import Order, OrderItem, OrderStatus

__all__ = ['User', 'Category', 'Product', 'Customer', 'Order', 'OrderItem', 'OrderStatus']

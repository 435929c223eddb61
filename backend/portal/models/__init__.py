from .users import Role, User, SessionToken
from .catalog import Product
from .orders import OrderStatus, ApprovalStatus, Order, OrderItem, StatusHistory, Approval, Comment
from .security import SecurityEvent

__all__ = [
    'Role', 'User', 'SessionToken',
    'Product',
    'OrderStatus', 'ApprovalStatus', 'Order', 'OrderItem', 'StatusHistory', 'Approval', 'Comment',
    'SecurityEvent',
]

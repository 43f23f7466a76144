from app.models.database import Base, commit_or_raise, get_db
from app.models.exchange_rate import ExchangeRate
from app.models.kv_entry import KVEntry
from app.models.order import Order
from app.models.product import Product
from app.models.refund import Refund

__all__ = ["Base", "commit_or_raise", "get_db", "ExchangeRate", "KVEntry", "Order", "Product", "Refund"]

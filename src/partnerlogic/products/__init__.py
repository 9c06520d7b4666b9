"""Product catalogue."""

from .models import Product
from .service import ProductService

__all__ = ["Product", "ProductService"]

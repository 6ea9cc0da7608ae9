from app.models.records import Notice, Product, Representative

__all__ = ["Notice", "Product", "Representative"]

from sqlalchemy.orm import Session

from app.models import Product


def get_product_owner(db: Session, product_id) -> int | None:
    """Current seller of a product, read from the product record itself."""
    row = db.query(Product.shop_owner_id).filter(Product.id == product_id).first()
    return row[0] if row else None


def decrease_product_stock(db: Session, product_id, quantity: int) -> bool:
    """Atomically take ``quantity`` units if enough are in stock.

    A single conditional UPDATE, so concurrent checkouts cannot oversell.
    Returns False (and changes nothing) when stock is insufficient.
    """
    if quantity <= 0:
        return False
    updated = (
        db.query(Product)
        .filter(Product.id == product_id, Product.stock_quantity >= quantity)
        .update(
            {Product.stock_quantity: Product.stock_quantity - quantity},
            synchronize_session=False,
        )
    )
    return updated == 1

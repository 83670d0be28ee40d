"""Express stock lookups (read-only). Stock never blocks an order."""
from typing import List, Dict
from sqlalchemy.orm import Session
from atelier.models import ExpressStock, Fabric


def get_express_quantity(session: Session, product_id: int, size_cm: int, fabric_id: int) -> int:
    """On-hand finished pieces for the combination (0 when unknown)."""
    stock = session.query(ExpressStock).filter(
        ExpressStock.product_id == product_id,
        ExpressStock.size_cm == size_cm,
        ExpressStock.fabric_id == fabric_id
    ).first()
    return max(stock.quantity, 0) if stock else 0


def express_options(session: Session, product_id: int) -> List[Dict]:
    """List (size, fabric) combinations of a product with stock on hand."""
    rows = session.query(ExpressStock, Fabric).join(
        Fabric, Fabric.id == ExpressStock.fabric_id
    ).filter(
        ExpressStock.product_id == product_id,
        ExpressStock.quantity > 0
    ).order_by(ExpressStock.size_cm, Fabric.name).all()

    return [
        {
            'size_cm': stock.size_cm,
            'fabric_id': fabric.id,
            'fabric_name': fabric.name,
            'fabric_grade': fabric.grade.value,
            'quantity': stock.quantity,
        }
        for stock, fabric in rows
    ]

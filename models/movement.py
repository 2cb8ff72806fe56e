"""
Product movement log (checkout / return).
Write-only history; the product row keeps the last condition.
"""

import json

from database import get_db, transaction

MOVEMENT_TYPES = ('CHECKOUT', 'RETURN')


def create_movement(product_id: int, movement_type: str, performed_by: str,
                    reservation_id: int = None, condition: str = 'OK',
                    notes: str = None, photos: list = None) -> int:
    """
    Record a movement and update the product's last condition.

    Args:
        product_id: Product moved
        movement_type: 'CHECKOUT' or 'RETURN'
        performed_by: Actor
        reservation_id: Related reservation
        condition: Product condition at the time of the movement
        notes: Free text
        photos: Opaque photo metadata (stored as JSON)

    Returns:
        New movement ID
    """
    if movement_type not in MOVEMENT_TYPES:
        raise ValueError(f"Invalid movement type: {movement_type}")

    with transaction() as db:
        cursor = db.execute('''
            INSERT INTO movements
            (product_id, reservation_id, type, condition, notes, photos, performed_by)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        ''', (product_id, reservation_id, movement_type, condition, notes,
              json.dumps(photos) if photos else None, performed_by))

        db.execute('''
            UPDATE products
            SET last_condition = ?, last_movement_at = CURRENT_TIMESTAMP
            WHERE id = ?
        ''', (condition, product_id))

        return cursor.lastrowid


def get_product_movements(product_id: int, limit: int = 50) -> list:
    """Movements of a product, newest first."""
    db = get_db()
    rows = db.execute('''
        SELECT * FROM movements
        WHERE product_id = ?
        ORDER BY id DESC
        LIMIT ?
    ''', (product_id, limit)).fetchall()

    movements = []
    for row in rows:
        movement = dict(row)
        movement['photos'] = json.loads(movement['photos']) if movement['photos'] else []
        movements.append(movement)
    return movements

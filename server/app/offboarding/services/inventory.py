"""IT staff laptop pool counters."""


async def adjust_available(conn, staff_user_id: int, delta: int) -> int:
    """Add ``delta`` to a staff member's available laptops, never going below zero.

    Creates the inventory row on first use. Returns the new count.
    """
    return await conn.fetchval(
        """
        INSERT INTO it_staff_inventory (user_id, available_laptops)
        VALUES ($1, GREATEST($2, 0))
        ON CONFLICT (user_id) DO UPDATE
        SET available_laptops = GREATEST(it_staff_inventory.available_laptops + $2, 0),
            updated_at = NOW()
        RETURNING available_laptops
        """,
        staff_user_id,
        delta,
    )

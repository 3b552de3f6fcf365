"""Lookups against the users directory."""

from typing import Optional

from ..models.termination import DirectoryUser, ITStaffMember

IT_STAFF_ROLES: tuple[str, ...] = ("Admin", "I.T.")


async def lookup_user(conn, user_id: int) -> Optional[DirectoryUser]:
    row = await conn.fetchrow(
        "SELECT id, name, email, role FROM users WHERE id = $1",
        user_id,
    )
    if not row:
        return None
    return DirectoryUser(id=row["id"], name=row["name"], email=row["email"], role=row["role"])


async def list_it_staff(conn) -> list[ITStaffMember]:
    rows = await conn.fetch(
        """
        SELECT u.id AS user_id, u.name, u.email, u.role,
               COALESCE(i.available_laptops, 0) AS available_laptops
        FROM users u
        LEFT JOIN it_staff_inventory i ON i.user_id = u.id
        WHERE u.role IN ('Admin', 'I.T.') AND u.is_active = true
        ORDER BY u.name
        """
    )
    return [
        ITStaffMember(
            user_id=row["user_id"],
            name=row["name"],
            email=row["email"],
            role=row["role"],
            available_laptops=row["available_laptops"],
        )
        for row in rows
    ]

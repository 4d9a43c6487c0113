from __future__ import annotations

from sqlalchemy import Connection, text

DEMO_BARBERSHOP_ID = "8f1c2a5e-0d4b-4c3e-9a61-2f7d5b8e9c10"
DEMO_BARBER_ID = "3b6e9d21-7c4a-4f8e-b2d5-6a1c0e9f4d37"
DEMO_SERVICE_ID = "c5d8e2f4-1a3b-4e6c-8d9f-0b2a4c6e8f11"


def _insert_ignore(connection: Connection, table: str, row: dict[str, object]) -> None:
    columns = ", ".join(row)
    placeholders = ", ".join(f":{key}" for key in row)
    statement = text(
        f"""
        INSERT INTO {table} ({columns})
        VALUES ({placeholders})
        ON CONFLICT(id) DO NOTHING
        """
    )
    connection.execute(statement, row)


def seed_demo_barbershop(connection: Connection) -> None:
    _insert_ignore(
        connection,
        "barbershops",
        {
            "id": DEMO_BARBERSHOP_ID,
            "name": "Demo Barbershop",
            "slug": "demo-barbershop",
            "phone": "+5511900000000",
            "timezone": "America/Sao_Paulo",
        },
    )
    _insert_ignore(
        connection,
        "barbers",
        {"id": DEMO_BARBER_ID, "name": "Demo Barber", "barbershop_id": DEMO_BARBERSHOP_ID},
    )
    _insert_ignore(
        connection,
        "services",
        {
            "id": DEMO_SERVICE_ID,
            "name": "Haircut",
            "duration_min": 30,
            "price": 45,
            "barbershop_id": DEMO_BARBERSHOP_ID,
        },
    )


SEED_STEPS = [seed_demo_barbershop]

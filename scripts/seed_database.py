"""
Seed a MySQL database with a small warehouse schema for manual browsing.

Usage: python scripts/seed_database.py
"""

import asyncio
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import text

from dbbrowser.config import get_settings
from dbbrowser.connection import ConnectionHolder

settings = get_settings()

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS klienci (
        id INT AUTO_INCREMENT PRIMARY KEY,
        nazwa VARCHAR(100) NOT NULL,
        email VARCHAR(255),
        aktywny TINYINT(1) NOT NULL DEFAULT 1
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS produkty (
        id INT AUTO_INCREMENT PRIMARY KEY,
        kod VARCHAR(20) NOT NULL,
        cena DECIMAL(10, 2) NOT NULL,
        rozmiar ENUM('S', 'M', 'L')
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS zamowienia (
        id INT AUTO_INCREMENT PRIMARY KEY,
        klient_id INT NULL,
        produkt_id INT NOT NULL,
        ilosc SMALLINT UNSIGNED NOT NULL,
        zlozono DATETIME NOT NULL,
        zmieniono TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (klient_id) REFERENCES klienci(id),
        FOREIGN KEY (produkt_id) REFERENCES produkty(id)
    )
    """,
]

ROWS = [
    "INSERT INTO klienci (nazwa, email) VALUES ('Zofia', 'zofia@example.com'), ('Adam', NULL)",
    "INSERT INTO produkty (kod, cena, rozmiar) VALUES ('BOLT-10', 0.25, 'S'), ('NUT-10', 0.10, NULL)",
    "INSERT INTO zamowienia (klient_id, produkt_id, ilosc, zlozono) "
    "VALUES (1, 1, 40, '2024-03-01 09:30:00'), (NULL, 2, 5, '2024-03-02 14:00:00')",
]


async def seed():
    """Create the demo tables and fill them when empty."""
    holder = ConnectionHolder()
    await holder.connect(
        settings.DB_HOST,
        settings.DB_PORT,
        settings.DB_USER,
        settings.DB_PASSWORD,
        settings.DB_NAME,
    )
    engine = await holder.snapshot()

    async with engine.begin() as conn:
        for statement in SCHEMA:
            await conn.execute(text(statement))
        print("Demo tables created")

        result = await conn.execute(text("SELECT COUNT(*) FROM klienci"))
        if result.scalar():
            print("Demo rows already present")
        else:
            for statement in ROWS:
                await conn.execute(text(statement))
            print("Demo rows inserted")

    await holder.disconnect()


if __name__ == "__main__":
    asyncio.run(seed())

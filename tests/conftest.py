"""Pytest configuration and fixtures.

``FakeDatabase`` stands in for a MySQL server: it answers the catalog queries
the introspector issues, stores rows, and evaluates the statements the query
builder renders, including the foreign-key LEFT JOINs.
"""

import re
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, AsyncGenerator, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.engine import make_url
from sqlalchemy.exc import OperationalError

import dbbrowser.connection
from dbbrowser.connection import ConnectionHolder
from dbbrowser.database import get_holder
from dbbrowser.main import app
from dbbrowser.services.table_service import TableService

# (name, data_type, column_type, column_key)
Column = Tuple[str, str, str, str]


class FakeResult:
    """Buffered result exposing the subset of ``CursorResult`` in use."""

    def __init__(
        self,
        columns=(),
        rows=(),
        rowcount: int = -1,
        lastrowid: Optional[int] = None,
    ):
        self._columns = list(columns)
        self._rows = [tuple(row) for row in rows]
        self.rowcount = rowcount
        self.lastrowid = lastrowid

    def keys(self) -> List[str]:
        return list(self._columns)

    def fetchall(self) -> List[tuple]:
        return list(self._rows)

    def scalar(self) -> Any:
        return self._rows[0][0] if self._rows else None


def _same(left: Any, right: Any) -> bool:
    # MySQL compares '1' and 1 as equal
    return left is not None and right is not None and str(left) == str(right)


class FakeTable:
    def __init__(self, columns: List[Column], foreign_keys=None):
        self.columns = columns
        self.foreign_keys = list(foreign_keys or [])
        self.rows: List[Dict[str, Any]] = []
        self.next_id = 1

    @property
    def column_names(self) -> List[str]:
        return [column[0] for column in self.columns]

    def insert(self, values: Dict[str, Any]) -> int:
        row = {name: None for name in self.column_names}
        row.update(values)
        if "id" in row and row["id"] is None:
            row["id"] = self.next_id
        if isinstance(row.get("id"), int):
            self.next_id = max(self.next_id, row["id"]) + 1
        self.rows.append(row)
        return row.get("id")


class FakeDatabase:
    """In-memory catalog and row store answering rendered SQL."""

    def __init__(self, name: str = "warehouse_db"):
        self.name = name
        self.tables: Dict[str, FakeTable] = {}
        self.executed: List[Tuple[str, Dict[str, Any]]] = []
        self.unreadable_tables = set()
        self.fail_on: Optional[str] = None
        self.reachable = True

    def add_table(self, name: str, columns: List[Column], foreign_keys=None) -> FakeTable:
        table = FakeTable(columns, foreign_keys)
        self.tables[name] = table
        return table

    @property
    def statements(self) -> List[str]:
        return [sql for sql, _ in self.executed]

    def execute(self, statement, params=None) -> FakeResult:
        sql = " ".join(str(statement).split())
        params = dict(params or {})
        self.executed.append((sql, params))

        if self.fail_on and self.fail_on in sql:
            raise OperationalError(sql, params, Exception("Lost connection to MySQL server"))

        if sql == "SELECT 1":
            if not self.reachable:
                raise OperationalError(sql, params, Exception("Can't connect to MySQL server"))
            return FakeResult(["1"], [(1,)])
        if sql == "SHOW TABLES":
            return FakeResult([f"Tables_in_{self.name}"], [(name,) for name in self.tables])
        if "information_schema.columns" in sql:
            return self._columns(params["table_name"])
        if "information_schema.key_column_usage" in sql:
            return self._foreign_keys(params["table_name"])
        if sql.startswith("SELECT COUNT(*)"):
            table = re.search(r"FROM `([^`]+)`", sql).group(1)
            return FakeResult(["COUNT(*)"], [(len(self.tables[table].rows),)])
        if sql.startswith("INSERT INTO"):
            return self._insert(sql, params)
        if sql.startswith("UPDATE"):
            return self._update(sql, params)
        if sql.startswith("DELETE FROM"):
            return self._delete(sql, params)
        if "AS main_table" in sql:
            return self._joined_select(sql)
        if " AS display " in sql:
            return self._candidates(sql)
        if sql.startswith("SELECT * FROM"):
            table = self.tables[re.search(r"FROM `([^`]+)`", sql).group(1)]
            return FakeResult(
                table.column_names,
                [[row[name] for name in table.column_names] for row in table.rows],
            )
        raise AssertionError(f"Unexpected statement: {sql}")

    def _columns(self, table_name: str) -> FakeResult:
        if table_name in self.unreadable_tables:
            raise OperationalError("columns", {}, Exception("SELECT command denied"))
        table = self.tables.get(table_name)
        if table is None:
            return FakeResult()
        return FakeResult(
            ["column_name", "data_type", "column_type", "is_nullable", "column_default", "column_key"],
            [
                (name, data_type, column_type, "NO" if key == "PRI" else "YES", None, key)
                for name, data_type, column_type, key in table.columns
            ],
        )

    def _foreign_keys(self, table_name: str) -> FakeResult:
        table = self.tables.get(table_name)
        return FakeResult(
            ["column_name", "referenced_table_name", "referenced_column_name"],
            table.foreign_keys if table else [],
        )

    def _insert(self, sql: str, params: Dict[str, Any]) -> FakeResult:
        match = re.match(r"INSERT INTO `([^`]+)` \((.*)\) VALUES \((.*)\)", sql)
        table = self.tables[match.group(1)]
        columns = re.findall(r"`([^`]+)`", match.group(2))
        placeholders = re.findall(r":(\w+)", match.group(3))
        new_id = table.insert({c: params[p] for c, p in zip(columns, placeholders)})
        return FakeResult(rowcount=1, lastrowid=new_id)

    def _update(self, sql: str, params: Dict[str, Any]) -> FakeResult:
        match = re.match(r"UPDATE `([^`]+)` SET (.*) WHERE `([^`]+)` = :row_id", sql)
        table = self.tables[match.group(1)]
        assignments = re.findall(r"`([^`]+)` = :(v\d+)", match.group(2))
        affected = 0
        for row in table.rows:
            if _same(row[match.group(3)], params["row_id"]):
                for column, placeholder in assignments:
                    row[column] = params[placeholder]
                affected += 1
        return FakeResult(rowcount=affected)

    def _delete(self, sql: str, params: Dict[str, Any]) -> FakeResult:
        match = re.match(r"DELETE FROM `([^`]+)` WHERE `([^`]+)` = :row_id", sql)
        table = self.tables[match.group(1)]
        kept = [row for row in table.rows if not _same(row[match.group(2)], params["row_id"])]
        affected = len(table.rows) - len(kept)
        table.rows = kept
        return FakeResult(rowcount=affected)

    def _joined_select(self, sql: str) -> FakeResult:
        table = self.tables[re.search(r"FROM `([^`]+)` AS main_table", sql).group(1)]
        projections = re.findall(r"jt(\d+)\.`([^`]+)` AS `([^`]+)`", sql)
        joins = {
            index: (referenced, column, referenced_column)
            for referenced, index, column, referenced_column in re.findall(
                r"LEFT JOIN `([^`]+)` AS jt(\d+) ON main_table\.`([^`]+)` = jt\d+\.`([^`]+)`",
                sql,
            )
        }
        columns = table.column_names + [alias for _, _, alias in projections]
        rows = []
        for row in table.rows:
            values = [row[name] for name in table.column_names]
            for index, descriptive, _ in projections:
                referenced, column, referenced_column = joins[index]
                match = next(
                    (
                        other
                        for other in self.tables[referenced].rows
                        if _same(other[referenced_column], row[column])
                    ),
                    None,
                )
                values.append(match[descriptive] if match else None)
            rows.append(values)
        return FakeResult(columns, rows)

    def _candidates(self, sql: str) -> FakeResult:
        id_column, display_column, table_name = re.search(
            r"SELECT `([^`]+)` AS id, `([^`]+)` AS display FROM `([^`]+)`", sql
        ).groups()
        rows = sorted(
            self.tables[table_name].rows,
            key=lambda row: (row[display_column] is not None, row[display_column] or ""),
        )
        return FakeResult(
            ["id", "display"], [(row[id_column], row[display_column]) for row in rows]
        )


class FakeConnection:
    def __init__(self, db: FakeDatabase):
        self.db = db

    async def execute(self, statement, params=None) -> FakeResult:
        return self.db.execute(statement, params)


class FakeEngine:
    """Async engine double handing out connections to a ``FakeDatabase``."""

    def __init__(self, db: FakeDatabase, url, **kwargs):
        self.db = db
        self.url = make_url(url)
        self.kwargs = kwargs
        self.disposed = False

    @asynccontextmanager
    async def connect(self):
        yield FakeConnection(self.db)

    @asynccontextmanager
    async def begin(self):
        yield FakeConnection(self.db)

    async def dispose(self) -> None:
        self.disposed = True


def build_warehouse(db: FakeDatabase) -> FakeDatabase:
    """Schema of a small warehouse with two foreign keys on ``orders``."""
    customers = db.add_table(
        "customers",
        [
            ("id", "int", "int", "PRI"),
            ("email", "varchar", "varchar(255)", ""),
            ("Nazwa", "varchar", "varchar(100)", ""),
        ],
    )
    products = db.add_table(
        "products",
        [
            ("id", "int", "int", "PRI"),
            ("code", "varchar", "varchar(20)", ""),
            ("price", "decimal", "decimal(10,2)", ""),
        ],
    )
    db.add_table(
        "orders",
        [
            ("id", "int", "int", "PRI"),
            ("customer_id", "int", "int", "MUL"),
            ("product_id", "int", "int", "MUL"),
            ("quantity", "smallint", "smallint unsigned", ""),
            ("shipped", "tinyint", "tinyint(1)", ""),
            ("ordered_at", "datetime", "datetime", ""),
        ],
        foreign_keys=[
            ("customer_id", "customers", "id"),
            ("product_id", "products", "id"),
        ],
    )
    db.add_table(
        "people",
        [
            ("id", "int", "int", "PRI"),
            ("name", "varchar", "varchar(50)", ""),
            ("age", "int", "int", ""),
        ],
    )

    customers.insert({"email": "zofia@example.com", "Nazwa": "Zofia"})
    customers.insert({"email": "adam@example.com", "Nazwa": "Adam"})
    products.insert({"code": "BOLT-10", "price": Decimal("0.25")})
    db.tables["orders"].insert(
        {
            "customer_id": 1,
            "product_id": 1,
            "quantity": 40,
            "shipped": 1,
            "ordered_at": datetime(2024, 3, 1, 9, 30),
        }
    )
    db.tables["orders"].insert(
        {"customer_id": None, "product_id": 99, "quantity": 2, "shipped": 0}
    )
    return db


@pytest.fixture
def fake_db() -> FakeDatabase:
    """Warehouse database with a few rows."""
    return build_warehouse(FakeDatabase())


@pytest.fixture
def fake_connection(fake_db) -> FakeConnection:
    """Connection to the fake warehouse database."""
    return FakeConnection(fake_db)


@pytest.fixture
def fake_engines(fake_db, monkeypatch) -> List[FakeEngine]:
    """Route engine creation to the fake database; collects created engines."""
    engines: List[FakeEngine] = []

    def create_fake_engine(url, **kwargs):
        engine = FakeEngine(fake_db, url, **kwargs)
        engines.append(engine)
        return engine

    monkeypatch.setattr(dbbrowser.connection, "create_async_engine", create_fake_engine)
    return engines


@pytest_asyncio.fixture
async def holder(fake_engines) -> AsyncGenerator[ConnectionHolder, None]:
    """Holder connected to the fake warehouse database."""
    connection_holder = ConnectionHolder(pool_size=5)
    await connection_holder.connect("localhost", 3307, "root", "root", "warehouse_db")
    yield connection_holder
    await connection_holder.disconnect()


@pytest.fixture
def service(holder) -> TableService:
    """Table service bound to the connected holder."""
    return TableService(holder)


@pytest_asyncio.fixture
async def client(holder) -> AsyncGenerator[AsyncClient, None]:
    """Get test HTTP client."""
    app.dependency_overrides[get_holder] = lambda: holder

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()

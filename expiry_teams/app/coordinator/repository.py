"""PostgreSQL persistence for teams, memberships and team inventory."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Dict, Iterable, List, Optional, Sequence

import psycopg2
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ...app_context import get_conn
from ..inventory import Batch, Brand, Category, Product, Store
from ..teams import Membership, MembershipStatus, Role, Team, TeamMember, User


@contextmanager
def managed_connection(conn: Optional[PgConnection] = None):
    """Context manager that manages transaction boundaries for optional connections."""

    if conn is not None:
        yield conn, False
        return

    connection = get_conn()
    try:
        yield connection, True
        connection.commit()
    except Exception:
        connection.rollback()
        raise
    finally:
        connection.close()


class _PostgresRepository:
    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    @contextmanager
    def _cursor(self) -> Iterable[PgCursor]:
        with managed_connection(self._conn) as (connection, managed):
            cursor = connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            try:
                yield cursor
                if managed:
                    connection.commit()
            except Exception:
                if managed:
                    connection.rollback()
                raise
            finally:
                cursor.close()


def _row_to_team(row: dict) -> Team:
    return Team(id=str(row["id"]), name=row["name"], created_at=row.get("created_at"))


def _row_to_membership(row: dict) -> Membership:
    return Membership(
        id=str(row["id"]) if row.get("id") is not None else None,
        team_id=str(row["team_id"]),
        user_id=str(row["user_id"]),
        role=Role(row["role"].lower()),
        status=MembershipStatus(row["status"]),
        invite_code=row.get("code"),
    )


def _row_to_member(row: dict) -> TeamMember:
    return TeamMember(
        id=str(row["user_id"]),
        email=row["email"],
        name=row.get("name"),
        last_name=row.get("last_name"),
        role=Role(row["role"].lower()),
        status=MembershipStatus(row["status"]),
        invite_code=row.get("code"),
    )


def _row_to_store(row: dict) -> Store:
    return Store(id=str(row["id"]), name=row["name"], team_id=str(row["team_id"]))


def _row_to_brand(row: dict) -> Brand:
    return Brand(id=str(row["id"]), name=row["name"], team_id=str(row["team_id"]))


def _row_to_category(row: dict) -> Category:
    return Category(id=str(row["id"]), name=row["name"], team_id=str(row["team_id"]))


def _row_to_batch(row: dict) -> Batch:
    return Batch(
        id=str(row["id"]),
        product_id=str(row["product_id"]),
        name=row.get("name"),
        expiry_date=row["exp_date"],
        amount=row.get("amount"),
        price=float(row["price"]) if row.get("price") is not None else None,
        temp_price=float(row["price_tmp"]) if row.get("price_tmp") is not None else None,
    )


def _row_to_product(row: dict, batches: Sequence[Batch] = ()) -> Product:
    brand = None
    if row.get("brand_id") is not None:
        brand = Brand(id=str(row["brand_id"]), name=row["brand_name"], team_id=str(row["team_id"]))
    store = None
    if row.get("store_id") is not None:
        store = Store(id=str(row["store_id"]), name=row["store_name"], team_id=str(row["team_id"]))
    category = None
    if row.get("category_id") is not None:
        category = Category(id=str(row["category_id"]), name=row["category_name"], team_id=str(row["team_id"]))
    return Product(
        id=str(row["id"]),
        name=row["name"],
        code=row.get("code"),
        brand=brand,
        category=category,
        store=store,
        team_id=str(row["team_id"]),
        batches=list(batches),
    )


class PostgresTeamRepository(_PostgresRepository):
    """Teams, memberships (``users_teams``) and store assignments (``users_stores``)."""

    def get_team(self, team_id: str) -> Optional[Team]:
        with self._cursor() as cursor:
            cursor.execute("SELECT id, name, created_at FROM teams WHERE id = %s", (team_id,))
            row = cursor.fetchone()
        return _row_to_team(row) if row else None

    def delete_team(self, team_id: str) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                "DELETE FROM users_stores WHERE store_id IN (SELECT id FROM stores WHERE team_id = %s)",
                (team_id,),
            )
            cursor.execute("DELETE FROM stores WHERE team_id = %s", (team_id,))
            cursor.execute("DELETE FROM users_teams WHERE team_id = %s", (team_id,))
            cursor.execute("DELETE FROM teams WHERE id = %s", (team_id,))

    def get_membership(self, team_id: str, user_id: str) -> Optional[Membership]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT id, team_id, user_id, role, status, code
                FROM users_teams
                WHERE team_id = %s AND user_id = %s
                """,
                (team_id, user_id),
            )
            row = cursor.fetchone()
        return _row_to_membership(row) if row else None

    def list_members(self, team_id: str) -> List[TeamMember]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT ut.user_id, ut.role, ut.status, ut.code, u.email, u.name, u.last_name
                FROM users_teams ut
                JOIN users u ON u.id = ut.user_id
                WHERE ut.team_id = %s
                ORDER BY u.email
                """,
                (team_id,),
            )
            rows = cursor.fetchall()
        return [_row_to_member(row) for row in rows]

    def count_memberships(self, team_id: str) -> int:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT COUNT(*) AS total FROM users_teams WHERE team_id = %s AND status IN (%s, %s)",
                (team_id, MembershipStatus.INVITED.value, MembershipStatus.COMPLETED.value),
            )
            row = cursor.fetchone()
        return int(row["total"]) if row else 0

    def save_membership(self, membership: Membership) -> Membership:
        """Insert or update the membership identified by team and user."""

        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO users_teams (team_id, user_id, role, status, code)
                VALUES (%s, %s, %s, %s, %s)
                ON CONFLICT (team_id, user_id) DO UPDATE SET
                    role = EXCLUDED.role,
                    status = EXCLUDED.status,
                    code = EXCLUDED.code
                RETURNING id, team_id, user_id, role, status, code
                """,
                (
                    membership.team_id,
                    membership.user_id,
                    membership.role.value,
                    membership.status.value,
                    membership.invite_code,
                ),
            )
            row = cursor.fetchone()
        return _row_to_membership(row)

    def delete_membership(self, team_id: str, user_id: str) -> None:
        with self._cursor() as cursor:
            cursor.execute("DELETE FROM users_teams WHERE team_id = %s AND user_id = %s", (team_id, user_id))

    def find_user_by_email(self, email: str) -> Optional[User]:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT id, email, name, last_name FROM users WHERE LOWER(email) = LOWER(%s)",
                (email,),
            )
            row = cursor.fetchone()
        if not row:
            return None
        return User(id=str(row["id"]), email=row["email"], name=row.get("name"), last_name=row.get("last_name"))

    def list_stores(self, team_id: str) -> List[Store]:
        with self._cursor() as cursor:
            cursor.execute("SELECT id, name, team_id FROM stores WHERE team_id = %s ORDER BY name", (team_id,))
            rows = cursor.fetchall()
        return [_row_to_store(row) for row in rows]

    def get_user_store(self, team_id: str, user_id: str) -> Optional[Store]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT s.id, s.name, s.team_id
                FROM users_stores us
                JOIN stores s ON s.id = us.store_id
                WHERE s.team_id = %s AND us.user_id = %s
                LIMIT 1
                """,
                (team_id, user_id),
            )
            row = cursor.fetchone()
        return _row_to_store(row) if row else None

    def remove_user_from_stores(self, team_id: str, user_id: str) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                """
                DELETE FROM users_stores
                WHERE user_id = %s
                  AND store_id IN (SELECT id FROM stores WHERE team_id = %s)
                """,
                (user_id, team_id),
            )


_PRODUCT_COLUMNS = """
    p.id, p.name, p.code, p.team_id,
    b.id AS brand_id, b.name AS brand_name,
    s.id AS store_id, s.name AS store_name,
    c.id AS category_id, c.name AS category_name
FROM products p
LEFT JOIN brands b ON b.id = p.brand_id
LEFT JOIN categories c ON c.id = p.category_id
LEFT JOIN stores s ON s.id = p.store_id
"""

_BATCH_COLUMNS = "id, product_id, name, exp_date, amount, price, price_tmp"


class PostgresInventoryRepository(_PostgresRepository):
    """Products, batches and brands of a team."""

    def _batches_for(self, cursor: PgCursor, product_ids: Sequence[str]) -> Dict[str, List[Batch]]:
        grouped: Dict[str, List[Batch]] = {product_id: [] for product_id in product_ids}
        if not product_ids:
            return grouped
        cursor.execute(
            f"SELECT {_BATCH_COLUMNS} FROM batches WHERE product_id = ANY(%s) ORDER BY exp_date, id",
            (list(product_ids),),
        )
        for row in cursor.fetchall():
            batch = _row_to_batch(row)
            grouped.setdefault(batch.product_id, []).append(batch)
        return grouped

    def get_product(self, product_id: str) -> Optional[Product]:
        with self._cursor() as cursor:
            cursor.execute(f"SELECT {_PRODUCT_COLUMNS} WHERE p.id = %s", (product_id,))
            row = cursor.fetchone()
            if not row:
                return None
            batches = self._batches_for(cursor, [str(row["id"])])
        return _row_to_product(row, batches[str(row["id"])])

    def list_products(self, team_id: str) -> List[Product]:
        with self._cursor() as cursor:
            cursor.execute(f"SELECT {_PRODUCT_COLUMNS} WHERE p.team_id = %s ORDER BY p.name", (team_id,))
            rows = cursor.fetchall()
            batches = self._batches_for(cursor, [str(row["id"]) for row in rows])
        return [_row_to_product(row, batches[str(row["id"])]) for row in rows]

    def list_product_ids(self, team_id: str) -> List[str]:
        with self._cursor() as cursor:
            cursor.execute("SELECT id FROM products WHERE team_id = %s", (team_id,))
            rows = cursor.fetchall()
        return [str(row["id"]) for row in rows]

    def find_products_by_code(self, team_id: str, code: str) -> List[Product]:
        with self._cursor() as cursor:
            cursor.execute(f"SELECT {_PRODUCT_COLUMNS} WHERE p.team_id = %s AND p.code = %s", (team_id, code))
            rows = cursor.fetchall()
        return [_row_to_product(row) for row in rows]

    def save_product(self, product: Product) -> Product:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO products (name, code, team_id, brand_id, category_id, store_id)
                VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING id
                """,
                (
                    product.name,
                    product.code,
                    product.team_id,
                    product.brand.id if product.brand else None,
                    product.category.id if product.category else None,
                    product.store.id if product.store else None,
                ),
            )
            row = cursor.fetchone()
        return product.model_copy(update={"id": str(row["id"])})

    def get_batch(self, batch_id: str) -> Optional[Batch]:
        with self._cursor() as cursor:
            cursor.execute(f"SELECT {_BATCH_COLUMNS} FROM batches WHERE id = %s", (batch_id,))
            row = cursor.fetchone()
        return _row_to_batch(row) if row else None

    def save_batch(self, batch: Batch) -> Batch:
        """Update an existing batch; discount changes only touch ``price_tmp``."""

        with self._cursor() as cursor:
            cursor.execute(
                f"""
                UPDATE batches
                SET name = %s, exp_date = %s, amount = %s, price = %s, price_tmp = %s
                WHERE id = %s
                RETURNING {_BATCH_COLUMNS}
                """,
                (batch.name, batch.expiry_date, batch.amount, batch.price, batch.temp_price, batch.id),
            )
            row = cursor.fetchone()
        return _row_to_batch(row)

    def save_batches(self, batches: Sequence[Batch]) -> List[Batch]:
        created: List[Batch] = []
        with self._cursor() as cursor:
            for batch in batches:
                cursor.execute(
                    f"""
                    INSERT INTO batches (product_id, name, exp_date, amount, price)
                    VALUES (%s, %s, %s, %s, %s)
                    RETURNING {_BATCH_COLUMNS}
                    """,
                    (batch.product_id, batch.name, batch.expiry_date, batch.amount, batch.price),
                )
                created.append(_row_to_batch(cursor.fetchone()))
        return created

    def get_category(self, category_id: str) -> Optional[Category]:
        with self._cursor() as cursor:
            cursor.execute("SELECT id, name, team_id FROM categories WHERE id = %s", (category_id,))
            row = cursor.fetchone()
        return _row_to_category(row) if row else None

    def list_brands(self, team_id: str) -> List[Brand]:
        with self._cursor() as cursor:
            cursor.execute("SELECT id, name, team_id FROM brands WHERE team_id = %s ORDER BY name", (team_id,))
            rows = cursor.fetchall()
        return [_row_to_brand(row) for row in rows]

    def save_brands(self, brands: Sequence[Brand]) -> List[Brand]:
        created: List[Brand] = []
        with self._cursor() as cursor:
            for brand in brands:
                cursor.execute(
                    "INSERT INTO brands (name, team_id) VALUES (%s, %s) RETURNING id, name, team_id",
                    (brand.name, brand.team_id),
                )
                created.append(_row_to_brand(cursor.fetchone()))
        return created

    def delete_team_inventory(self, team_id: str) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                "DELETE FROM batches WHERE product_id IN (SELECT id FROM products WHERE team_id = %s)",
                (team_id,),
            )
            cursor.execute("DELETE FROM products WHERE team_id = %s", (team_id,))
            cursor.execute("DELETE FROM categories WHERE team_id = %s", (team_id,))
            cursor.execute("DELETE FROM brands WHERE team_id = %s", (team_id,))

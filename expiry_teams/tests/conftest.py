from __future__ import annotations

import itertools
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Set, Tuple

import pytest

from expiry_teams.app.cache import (
    CacheBackendError,
    CacheCoherenceLayer,
    InMemoryCacheBackend,
)
from expiry_teams.app.coordinator import ResourceMutationCoordinator
from expiry_teams.app.inventory import Batch, Brand, Category, Product, Store
from expiry_teams.app.subscriptions import SubscriptionGate, TierEntry
from expiry_teams.app.teams import (
    AuthorizationGuard,
    Membership,
    MembershipStatus,
    Role,
    Team,
    TeamMember,
    User,
)

FIXED_NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)
TEAM_ID = "team-1"


def _fixed_clock() -> datetime:
    return FIXED_NOW


class InMemoryTeamRepository:
    def __init__(self) -> None:
        self.teams: Dict[str, Team] = {}
        self.users: Dict[str, User] = {}
        self.memberships: Dict[Tuple[str, str], Membership] = {}
        self.stores: Dict[str, Store] = {}
        self.user_stores: Dict[str, Set[str]] = {}
        self.removed_from_stores: List[Tuple[str, str]] = []
        self.deleted_teams: List[str] = []
        self._ids = itertools.count(1)

    def add_team(self, team_id: str, name: str = "Market") -> Team:
        team = Team(id=team_id, name=name)
        self.teams[team_id] = team
        return team

    def add_user(self, user_id: str, email: Optional[str] = None) -> User:
        user = User(id=user_id, email=email or f"{user_id}@example.com", name=user_id.title())
        self.users[user_id] = user
        return user

    def add_member(
        self,
        team_id: str,
        user_id: str,
        role: Role = Role.REPOSITOR,
        status: MembershipStatus = MembershipStatus.COMPLETED,
        invite_code: Optional[str] = None,
    ) -> Membership:
        if user_id not in self.users:
            self.add_user(user_id)
        membership = Membership(
            id=f"m{next(self._ids)}",
            team_id=team_id,
            user_id=user_id,
            role=role,
            status=status,
            invite_code=invite_code,
        )
        self.memberships[(team_id, user_id)] = membership
        return membership

    def add_store(self, team_id: str, store_id: str, *, members: Sequence[str] = ()) -> Store:
        store = Store(id=store_id, name=f"Store {store_id}", team_id=team_id)
        self.stores[store_id] = store
        for user_id in members:
            self.user_stores.setdefault(user_id, set()).add(store_id)
        return store

    def get_team(self, team_id: str) -> Optional[Team]:
        return self.teams.get(team_id)

    def delete_team(self, team_id: str) -> None:
        self.deleted_teams.append(team_id)
        self.teams.pop(team_id, None)
        for key in [key for key in self.memberships if key[0] == team_id]:
            del self.memberships[key]
        for store_id in [store.id for store in self.stores.values() if store.team_id == team_id]:
            del self.stores[store_id]

    def get_membership(self, team_id: str, user_id: str) -> Optional[Membership]:
        return self.memberships.get((team_id, user_id))

    def list_members(self, team_id: str) -> List[TeamMember]:
        members = []
        for (membership_team, user_id), membership in self.memberships.items():
            if membership_team != team_id:
                continue
            user = self.users[user_id]
            members.append(
                TeamMember(
                    id=user.id,
                    email=user.email,
                    name=user.name,
                    role=membership.role,
                    status=membership.status,
                    invite_code=membership.invite_code,
                )
            )
        return sorted(members, key=lambda member: member.email)

    def count_memberships(self, team_id: str) -> int:
        return sum(1 for membership_team, _ in self.memberships if membership_team == team_id)

    def save_membership(self, membership: Membership) -> Membership:
        if membership.id is None:
            membership = membership.model_copy(update={"id": f"m{next(self._ids)}"})
        self.memberships[(membership.team_id, membership.user_id)] = membership
        return membership

    def delete_membership(self, team_id: str, user_id: str) -> None:
        self.memberships.pop((team_id, user_id), None)

    def find_user_by_email(self, email: str) -> Optional[User]:
        return next((user for user in self.users.values() if user.email.lower() == email.lower()), None)

    def list_stores(self, team_id: str) -> List[Store]:
        return [store for store in self.stores.values() if store.team_id == team_id]

    def get_user_store(self, team_id: str, user_id: str) -> Optional[Store]:
        for store_id in sorted(self.user_stores.get(user_id, set())):
            store = self.stores.get(store_id)
            if store is not None and store.team_id == team_id:
                return store
        return None

    def remove_user_from_stores(self, team_id: str, user_id: str) -> None:
        self.removed_from_stores.append((team_id, user_id))
        team_store_ids = {store.id for store in self.list_stores(team_id)}
        self.user_stores[user_id] = self.user_stores.get(user_id, set()) - team_store_ids


class InMemoryInventoryRepository:
    def __init__(self) -> None:
        self.products: Dict[str, Product] = {}
        self.batches: Dict[str, Batch] = {}
        self.brands: Dict[str, Brand] = {}
        self.categories: Dict[str, Category] = {}
        self.product_reads = 0
        self._ids = itertools.count(1)

    def add_product(
        self,
        team_id: str,
        product_id: str,
        name: str = "Milk",
        *,
        code: Optional[str] = None,
        store: Optional[Store] = None,
        brand: Optional[Brand] = None,
    ) -> Product:
        product = Product(id=product_id, name=name, code=code, store=store, brand=brand, team_id=team_id)
        self.products[product_id] = product
        return product

    def add_batch(
        self,
        product_id: str,
        batch_id: str,
        expiry_date: date,
        *,
        price: Optional[float] = None,
    ) -> Batch:
        batch = Batch(id=batch_id, product_id=product_id, expiry_date=expiry_date, price=price)
        self.batches[batch_id] = batch
        return batch

    def add_brand(self, team_id: str, brand_id: str, name: str) -> Brand:
        brand = Brand(id=brand_id, name=name, team_id=team_id)
        self.brands[brand_id] = brand
        return brand

    def add_category(self, team_id: str, category_id: str, name: str) -> Category:
        category = Category(id=category_id, name=name, team_id=team_id)
        self.categories[category_id] = category
        return category

    def _with_batches(self, product: Product) -> Product:
        batches = [batch for batch in self.batches.values() if batch.product_id == product.id]
        return product.model_copy(update={"batches": batches})

    def get_product(self, product_id: str) -> Optional[Product]:
        self.product_reads += 1
        product = self.products.get(product_id)
        return self._with_batches(product) if product else None

    def list_products(self, team_id: str) -> List[Product]:
        return [self._with_batches(product) for product in self.products.values() if product.team_id == team_id]

    def list_product_ids(self, team_id: str) -> List[str]:
        return [product.id for product in self.products.values() if product.team_id == team_id]

    def find_products_by_code(self, team_id: str, code: str) -> List[Product]:
        return [
            product
            for product in self.products.values()
            if product.team_id == team_id and product.code == code
        ]

    def save_product(self, product: Product) -> Product:
        saved = product.model_copy(update={"id": product.id or f"product-{next(self._ids)}"})
        self.products[saved.id] = saved
        return saved

    def get_batch(self, batch_id: str) -> Optional[Batch]:
        return self.batches.get(batch_id)

    def save_batch(self, batch: Batch) -> Batch:
        self.batches[batch.id] = batch
        return batch

    def save_batches(self, batches: Sequence[Batch]) -> List[Batch]:
        created = []
        for batch in batches:
            saved = batch.model_copy(update={"id": batch.id or f"batch-{next(self._ids)}"})
            self.batches[saved.id] = saved
            created.append(saved)
        return created

    def get_category(self, category_id: str) -> Optional[Category]:
        return self.categories.get(category_id)

    def list_brands(self, team_id: str) -> List[Brand]:
        return [brand for brand in self.brands.values() if brand.team_id == team_id]

    def save_brands(self, brands: Sequence[Brand]) -> List[Brand]:
        created = []
        for brand in brands:
            saved = brand.model_copy(update={"id": brand.id or f"brand-{next(self._ids)}"})
            self.brands[saved.id] = saved
            created.append(saved)
        return created

    def delete_team_inventory(self, team_id: str) -> None:
        product_ids = set(self.list_product_ids(team_id))
        for batch_id in [batch.id for batch in self.batches.values() if batch.product_id in product_ids]:
            del self.batches[batch_id]
        for product_id in product_ids:
            del self.products[product_id]
        for brand_id in [brand.id for brand in self.brands.values() if brand.team_id == team_id]:
            del self.brands[brand_id]


class StaticBillingSource:
    def __init__(self) -> None:
        self.tiers: Dict[str, Dict[str, TierEntry]] = {}
        self.calls: List[str] = []

    def grant(self, team_id: str, tier_name: str, expires: datetime) -> None:
        self.tiers.setdefault(team_id, {})[tier_name] = TierEntry(expires_date=expires)

    def fetch_tiers(self, team_id: str) -> Dict[str, TierEntry]:
        self.calls.append(team_id)
        return dict(self.tiers.get(team_id, {}))


class FlakyCacheBackend(InMemoryCacheBackend):
    """In-memory cache whose operations can be made to fail on demand."""

    def __init__(self) -> None:
        super().__init__(clock=_fixed_clock)
        self.failing_deletes: Set[str] = set()
        self.delete_failures_remaining = 0
        self.fail_reads = False
        self.fail_writes = False
        self.delete_attempts: List[str] = []

    def get(self, key: str) -> Optional[str]:
        if self.fail_reads:
            raise CacheBackendError("read refused")
        return super().get(key)

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        if self.fail_writes:
            raise CacheBackendError("write refused")
        super().set(key, value, ttl_seconds)

    def delete(self, key: str) -> None:
        self.delete_attempts.append(key)
        if key in self.failing_deletes:
            raise CacheBackendError(f"delete refused for {key}")
        if self.delete_failures_remaining > 0:
            self.delete_failures_remaining -= 1
            raise CacheBackendError(f"transient delete failure for {key}")
        super().delete(key)


@pytest.fixture
def team_repository() -> InMemoryTeamRepository:
    repository = InMemoryTeamRepository()
    repository.add_team(TEAM_ID)
    repository.add_member(TEAM_ID, "manager-1", Role.MANAGER)
    repository.add_member(TEAM_ID, "supervisor-1", Role.SUPERVISOR)
    repository.add_member(TEAM_ID, "repositor-1", Role.REPOSITOR)
    return repository


@pytest.fixture
def inventory_repository() -> InMemoryInventoryRepository:
    return InMemoryInventoryRepository()


@pytest.fixture
def billing_source() -> StaticBillingSource:
    source = StaticBillingSource()
    source.grant(TEAM_ID, "expirybusiness_monthly_default_5people", FIXED_NOW + timedelta(days=20))
    return source


@pytest.fixture
def cache_backend() -> FlakyCacheBackend:
    return FlakyCacheBackend()


@pytest.fixture
def cache(cache_backend: FlakyCacheBackend) -> CacheCoherenceLayer:
    return CacheCoherenceLayer(cache_backend, invalidation_retries=1)


@pytest.fixture
def coordinator(
    team_repository: InMemoryTeamRepository,
    inventory_repository: InMemoryInventoryRepository,
    billing_source: StaticBillingSource,
    cache: CacheCoherenceLayer,
) -> ResourceMutationCoordinator:
    return ResourceMutationCoordinator(
        teams=team_repository,
        inventory=inventory_repository,
        guard=AuthorizationGuard(team_repository),
        gate=SubscriptionGate(billing_source, team_repository, clock=_fixed_clock),
        cache=cache,
        invite_code_generator=lambda: "ABC123",
    )

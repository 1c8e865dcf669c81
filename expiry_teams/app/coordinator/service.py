"""Service layer sequencing every write on team-owned resources.

Each mutation runs the same steps in order: require a caller identity,
authorize the caller's role for the action, validate the request against the
current state, persist through the repositories and finally invalidate every
cache key a reader may have populated for the affected resource. A failed
invalidation is logged and never rolls back the persisted write; affected keys
heal on their next invalidation or TTL expiry.
"""
from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Protocol, Sequence, Union

from ..cache import CacheCoherenceLayer, CacheKeyBuilder, CacheResource, InvalidationReport
from ..errors import AuthenticationRequired, Conflict, Forbidden, NotFound, NotMember, ValidationError
from ..inventory import (
    Batch,
    BatchDraft,
    Brand,
    Category,
    Product,
    ProductCodeReader,
    Store,
    is_product_duplicate,
    sort_batches_by_exp_date,
)
from ..subscriptions import MemberLimit, MembershipCounter, SubscriptionGate
from ..teams import (
    AuthorizationGuard,
    Membership,
    MembershipReader,
    MembershipStatus,
    Role,
    Team,
    TeamAction,
    TeamMember,
    TeamMemberSummary,
    User,
    parse_role,
)

logger = logging.getLogger(__name__)


class TeamRepository(MembershipReader, MembershipCounter, Protocol):
    """Persistence for teams, memberships and store assignments."""

    def get_team(self, team_id: str) -> Optional[Team]:
        ...

    def delete_team(self, team_id: str) -> None:
        ...

    def get_membership(self, team_id: str, user_id: str) -> Optional[Membership]:
        ...

    def list_members(self, team_id: str) -> List[TeamMember]:
        ...

    def count_memberships(self, team_id: str) -> int:
        ...

    def save_membership(self, membership: Membership) -> Membership:
        ...

    def delete_membership(self, team_id: str, user_id: str) -> None:
        ...

    def find_user_by_email(self, email: str) -> Optional[User]:
        ...

    def list_stores(self, team_id: str) -> List[Store]:
        ...

    def get_user_store(self, team_id: str, user_id: str) -> Optional[Store]:
        ...

    def remove_user_from_stores(self, team_id: str, user_id: str) -> None:
        ...


class InventoryRepository(ProductCodeReader, Protocol):
    """Persistence for products, batches, brands and categories."""

    def get_product(self, product_id: str) -> Optional[Product]:
        ...

    def list_products(self, team_id: str) -> List[Product]:
        ...

    def list_product_ids(self, team_id: str) -> List[str]:
        ...

    def find_products_by_code(self, team_id: str, code: str) -> List[Product]:
        ...

    def save_product(self, product: Product) -> Product:
        ...

    def get_batch(self, batch_id: str) -> Optional[Batch]:
        ...

    def save_batch(self, batch: Batch) -> Batch:
        ...

    def save_batches(self, batches: Sequence[Batch]) -> List[Batch]:
        ...

    def get_category(self, category_id: str) -> Optional[Category]:
        ...

    def list_brands(self, team_id: str) -> List[Brand]:
        ...

    def save_brands(self, brands: Sequence[Brand]) -> List[Brand]:
        ...

    def delete_team_inventory(self, team_id: str) -> None:
        ...


_INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_invite_code(length: int = 6) -> str:
    return "".join(secrets.choice(_INVITE_CODE_ALPHABET) for _ in range(length))


MemberView = Union[TeamMember, TeamMemberSummary]


@dataclass
class ResourceMutationCoordinator:
    """Coordinates authorization, subscription gating, persistence and caching."""

    teams: TeamRepository
    inventory: InventoryRepository
    guard: AuthorizationGuard
    gate: SubscriptionGate
    cache: CacheCoherenceLayer
    keys: CacheKeyBuilder = field(default_factory=CacheKeyBuilder)
    cache_ttl_seconds: Optional[int] = None
    enforce_subscription: bool = False
    invite_code_generator: Callable[[], str] = generate_invite_code

    # Products

    def create_product(
        self,
        caller_id: Optional[str],
        team_id: str,
        *,
        name: str,
        code: Optional[str] = None,
        brand_id: Optional[str] = None,
        category_id: Optional[str] = None,
        store_id: Optional[str] = None,
    ) -> Product:
        caller = self._require_caller(caller_id)
        role = self.guard.authorize(caller, team_id, TeamAction.CREATE_PRODUCT)

        team = self._require_team(team_id)
        self._require_subscription(team.id)
        product_name = (name or "").strip()
        if not product_name:
            raise ValidationError("Product name is required")
        product_code = (code or "").strip() or None

        store = self._resolve_product_store(caller, team.id, role, store_id)
        duplicate = is_product_duplicate(
            self.inventory,
            code=product_code,
            team_id=team.id,
            store_id=store.id if store else None,
        )
        if duplicate.is_duplicate:
            raise Conflict(
                "This product already exists. Try add a new batch",
                detail={"product_id": duplicate.product_id},
            )

        brand: Optional[Brand] = None
        if brand_id:
            brand = next((item for item in self.inventory.list_brands(team.id) if item.id == brand_id), None)

        category: Optional[Category] = None
        if category_id:
            category = self.inventory.get_category(category_id)
            if category is None or category.team_id != team.id:
                raise NotFound("Category was not found", detail={"category_id": category_id})

        saved = self.inventory.save_product(
            Product(
                name=product_name,
                code=product_code,
                brand=brand,
                category=category,
                store=store,
                team_id=team.id,
            )
        )
        self._invalidate(CacheResource.PRODUCT, team.id, product_ids=[saved.id] if saved.id else ())
        logger.info("Product %s created in team %s by %s", saved.id, team.id, caller)
        return saved

    def get_product(self, caller_id: Optional[str], team_id: str, product_id: str) -> Product:
        """Return a product with its batches ordered by expiry, cache-aside."""

        caller = self._require_caller(caller_id)
        self.guard.authorize(caller, team_id, TeamAction.VIEW_PRODUCTS)

        key = self.keys.product(team_id, product_id)
        cached = self.cache.get(key, Product)
        if cached is not None:
            return cached

        product = self.inventory.get_product(product_id)
        if product is None or product.team_id != team_id:
            raise NotFound("Product not found", detail={"product_id": product_id})

        organized = product.model_copy(update={"batches": sort_batches_by_exp_date(product.batches)})
        self.cache.save(key, organized, self.cache_ttl_seconds)
        return organized

    def list_products(self, caller_id: Optional[str], team_id: str) -> List[Product]:
        caller = self._require_caller(caller_id)
        self.guard.authorize(caller, team_id, TeamAction.VIEW_PRODUCTS)

        key = self.keys.product_list(team_id)
        cached = self.cache.get(key, List[Product])
        if cached is not None:
            return cached

        team = self._require_team(team_id)
        products = [
            product.model_copy(update={"batches": sort_batches_by_exp_date(product.batches)})
            for product in self.inventory.list_products(team.id)
        ]
        self.cache.save(key, products, self.cache_ttl_seconds)
        return products

    # Batches

    def create_batches(
        self,
        caller_id: Optional[str],
        product_id: str,
        drafts: Sequence[BatchDraft],
    ) -> List[Batch]:
        caller = self._require_caller(caller_id)
        product = self._require_product(product_id)
        self.guard.authorize(caller, product.team_id, TeamAction.CREATE_BATCHES)
        self._require_subscription(product.team_id)
        if not drafts:
            raise ValidationError("At least one batch is required")

        batches = [
            Batch(
                product_id=product_id,
                name=draft.name,
                expiry_date=draft.expiry_date,
                amount=draft.amount,
                price=draft.price,
            )
            for draft in drafts
        ]
        created = self.inventory.save_batches(batches)
        self._invalidate(CacheResource.BATCH, product.team_id, product_ids=[product_id])
        logger.info("%s batch(es) added to product %s by %s", len(created), product_id, caller)
        return created

    def update_batch_discount(
        self,
        caller_id: Optional[str],
        batch_id: str,
        temp_price: Optional[float],
    ) -> Batch:
        """Set (or clear with ``None``) a batch's temporary discount price."""

        caller = self._require_caller(caller_id)
        if not batch_id:
            raise ValidationError("batch_id is required")
        if temp_price is not None and temp_price < 0:
            raise ValidationError("temp_price must not be negative")

        batch = self.inventory.get_batch(batch_id)
        if batch is None:
            raise NotFound("Batch not found", detail={"batch_id": batch_id})
        product = self._require_product(batch.product_id)
        # Membership in the product's owning team is sufficient for every role.
        self.guard.authorize(caller, product.team_id, TeamAction.UPDATE_BATCH_DISCOUNT)
        self._require_subscription(product.team_id)

        updated = self.inventory.save_batch(batch.model_copy(update={"temp_price": temp_price}))
        self._invalidate(CacheResource.BATCH, product.team_id, product_ids=[batch.product_id])
        logger.info("Batch %s discount set to %s by %s", batch_id, temp_price, caller)
        return updated

    # Brands

    def create_brands(self, caller_id: Optional[str], team_id: str, names: Sequence[str]) -> List[Brand]:
        """Create the named brands the team does not have yet (case-insensitive)."""

        caller = self._require_caller(caller_id)
        self.guard.authorize(caller, team_id, TeamAction.CREATE_BRANDS)
        team = self._require_team(team_id)
        self._require_subscription(team.id)

        known = {brand.name.lower() for brand in self.inventory.list_brands(team.id)}
        to_create: List[Brand] = []
        for raw_name in names:
            brand_name = (raw_name or "").strip()
            if not brand_name or brand_name.lower() in known:
                continue
            known.add(brand_name.lower())
            to_create.append(Brand(name=brand_name, team_id=team.id))

        if not to_create:
            return []

        created = self.inventory.save_brands(to_create)
        self._invalidate(CacheResource.BRAND, team.id)
        logger.info("%s brand(s) created in team %s by %s", len(created), team.id, caller)
        return created

    def list_brands(self, caller_id: Optional[str], team_id: str) -> List[Brand]:
        caller = self._require_caller(caller_id)
        self.guard.authorize(caller, team_id, TeamAction.VIEW_BRANDS)

        key = self.keys.brand_list(team_id)
        cached = self.cache.get(key, List[Brand])
        if cached is not None:
            return cached

        brands = self.inventory.list_brands(team_id)
        self.cache.save(key, brands, self.cache_ttl_seconds)
        return brands

    # Memberships

    def list_team_members(self, caller_id: Optional[str], team_id: str) -> List[MemberView]:
        """List members; callers outside the full-view allow-list get the redacted view."""

        caller = self._require_caller(caller_id)
        role = self.guard.authorize(caller, team_id, TeamAction.LIST_MEMBERS)

        members = self._team_members(team_id)
        if self.guard.allows(role, TeamAction.VIEW_FULL_MEMBER_LIST):
            return list(members)
        return [member.summary() for member in members]

    def invite_member(self, caller_id: Optional[str], team_id: str, email: str) -> Membership:
        caller = self._require_caller(caller_id)
        self.guard.authorize(caller, team_id, TeamAction.INVITE_MEMBER)
        team = self._require_team(team_id)

        normalized_email = (email or "").strip().lower()
        if not normalized_email or "@" not in normalized_email:
            raise ValidationError("A valid email is required")

        limit = self.gate.check_member_limit(team.id)
        if limit.is_full:
            raise Conflict(
                "Team has reached the members limit",
                detail={"limit": limit.limit, "members": limit.members},
            )

        user = self.teams.find_user_by_email(normalized_email)
        if user is None:
            raise NotFound("User not found", detail={"email": normalized_email})
        if self.teams.get_membership(team.id, user.id) is not None:
            raise Conflict("User is already in the team", detail={"user_id": user.id})

        membership = self.teams.save_membership(
            Membership(
                team_id=team.id,
                user_id=user.id,
                role=Role.REPOSITOR,
                status=MembershipStatus.INVITED,
                invite_code=self.invite_code_generator(),
            )
        )
        self._invalidate(CacheResource.MEMBERSHIP, team.id)
        logger.info("User %s invited to team %s by %s", user.id, team.id, caller)
        return membership

    def accept_team_invite(self, caller_id: Optional[str], team_id: str, code: str) -> Membership:
        """Complete the caller's pending membership when the invite code matches."""

        caller = self._require_caller(caller_id)
        invite_code = (code or "").strip()
        if not invite_code:
            raise ValidationError("code is required")

        membership = self.teams.get_membership(team_id, caller)
        if membership is None:
            raise NotMember("You were not invited to the team", detail={"team_id": team_id})
        if membership.invite_code != invite_code:
            raise Conflict("Code is not valid")
        if membership.is_completed:
            return membership

        updated = self.teams.save_membership(membership.model_copy(update={"status": MembershipStatus.COMPLETED}))
        self._invalidate(CacheResource.MEMBERSHIP, team_id)
        logger.info("User %s joined team %s", caller, team_id)
        return updated

    def update_member_role(
        self,
        caller_id: Optional[str],
        team_id: str,
        user_id: str,
        role: str,
    ) -> Membership:
        caller = self._require_caller(caller_id)
        self.guard.authorize(caller, team_id, TeamAction.UPDATE_MEMBER_ROLE)

        new_role = parse_role(role)
        target = self._require_membership(team_id, user_id)

        updated = self.teams.save_membership(target.model_copy(update={"role": new_role}))
        self._invalidate(CacheResource.MEMBERSHIP, team_id)
        logger.info(
            "Role of %s in team %s changed from %s to %s by %s",
            user_id,
            team_id,
            target.role.value,
            new_role.value,
            caller,
        )
        return updated

    def remove_member(self, caller_id: Optional[str], team_id: str, user_id: str) -> None:
        """Remove a member; managers can only leave by deleting the team."""

        caller = self._require_caller(caller_id)
        role = self.guard.resolve_role(caller, team_id)
        target = self._require_membership(team_id, user_id)
        if target.role == Role.MANAGER:
            raise Conflict("You cannot remove a manager from team", detail={"user_id": user_id})
        if not self.guard.allows(role, TeamAction.REMOVE_MEMBER):
            raise Forbidden(detail={"team_id": team_id, "role": role.value})

        self.teams.remove_user_from_stores(team_id, user_id)
        self.teams.delete_membership(team_id, user_id)
        self._invalidate(CacheResource.MEMBERSHIP, team_id)
        logger.info("User %s removed from team %s by %s", user_id, team_id, caller)

    # Teams

    def delete_team(self, caller_id: Optional[str], team_id: str) -> None:
        caller = self._require_caller(caller_id)
        self.guard.authorize(caller, team_id, TeamAction.DELETE_TEAM)
        team = self._require_team(team_id)

        product_ids = self.inventory.list_product_ids(team.id)
        self.inventory.delete_team_inventory(team.id)
        self.teams.delete_team(team.id)
        self._invalidate(CacheResource.TEAM, team.id, product_ids=product_ids)
        logger.info("Team %s deleted by %s", team.id, caller)

    def is_team_active(self, caller_id: Optional[str], team_id: str) -> bool:
        caller = self._require_caller(caller_id)
        self.guard.authorize(caller, team_id, TeamAction.VIEW_SUBSCRIPTION)
        return self.gate.is_active(team_id)

    def check_member_limit(self, caller_id: Optional[str], team_id: str) -> MemberLimit:
        caller = self._require_caller(caller_id)
        self.guard.authorize(caller, team_id, TeamAction.VIEW_SUBSCRIPTION)
        return self.gate.check_member_limit(team_id)

    # Helpers

    def _require_caller(self, caller_id: Optional[str]) -> str:
        if not caller_id or not str(caller_id).strip():
            raise AuthenticationRequired()
        return str(caller_id)

    def _require_team(self, team_id: str) -> Team:
        key = self.keys.team(team_id)
        cached = self.cache.get(key, Team)
        if cached is not None:
            return cached

        team = self.teams.get_team(team_id)
        if team is None:
            raise NotFound("Team not found", detail={"team_id": team_id})
        self.cache.save(key, team, self.cache_ttl_seconds)
        return team

    def _require_product(self, product_id: str) -> Product:
        product = self.inventory.get_product(product_id)
        if product is None:
            raise NotFound("Product not found", detail={"product_id": product_id})
        return product

    def _require_membership(self, team_id: str, user_id: str) -> Membership:
        membership = self.teams.get_membership(team_id, user_id)
        if membership is None:
            raise NotFound("Membership not found", detail={"team_id": team_id, "user_id": user_id})
        return membership

    def _require_subscription(self, team_id: str) -> None:
        if self.enforce_subscription:
            self.gate.require_active(team_id)

    def _resolve_product_store(
        self,
        user_id: str,
        team_id: str,
        role: Role,
        store_id: Optional[str],
    ) -> Optional[Store]:
        if role == Role.MANAGER and store_id:
            return next((store for store in self.teams.list_stores(team_id) if store.id == store_id), None)
        return self.teams.get_user_store(team_id, user_id)

    def _team_members(self, team_id: str) -> List[TeamMember]:
        key = self.keys.member_list(team_id)
        cached = self.cache.get(key, List[TeamMember])
        if cached is not None:
            return cached

        members = self.teams.list_members(team_id)
        self.cache.save(key, members, self.cache_ttl_seconds)
        return members

    def _invalidate(
        self,
        resource: CacheResource,
        team_id: str,
        *,
        product_ids: Iterable[str] = (),
    ) -> InvalidationReport:
        report = self.cache.invalidate_many(self.keys.dependents(resource, team_id, product_ids=product_ids))
        if not report.ok:
            logger.warning(
                "Stale cache keys after %s mutation in team %s: %s",
                resource.value,
                team_id,
                ", ".join(report.failed),
            )
        return report

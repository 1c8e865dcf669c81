from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone

import pytest

from expiry_teams.app.errors import (
    AuthenticationRequired,
    Conflict,
    Forbidden,
    NoSubscription,
    NotFound,
    NotMember,
    SubscriptionExpired,
    ValidationError,
)
from expiry_teams.app.inventory import BatchDraft, Store
from expiry_teams.app.subscriptions import TierEntry
from expiry_teams.app.teams import MembershipStatus, Role, TeamMember, TeamMemberSummary

TEAM_ID = "team-1"
NOW = datetime(2024, 5, 10, 12, 0, tzinfo=timezone.utc)


def _team_keys(cache_backend):
    return sorted(key for key in cache_backend.keys() if key.startswith(f"team:{TEAM_ID}"))


@pytest.fixture
def stocked_inventory(inventory_repository):
    inventory_repository.add_product(TEAM_ID, "p1", "Milk", code="789")
    inventory_repository.add_batch("p1", "b-late", date(2024, 7, 1), price=4.0)
    inventory_repository.add_batch("p1", "b-early", date(2024, 5, 20), price=4.0)
    inventory_repository.add_brand(TEAM_ID, "br1", "Acme")
    return inventory_repository


# Authentication and membership


def test_anonymous_caller_is_rejected_before_anything_else(coordinator, inventory_repository) -> None:
    with pytest.raises(AuthenticationRequired) as exc:
        coordinator.create_product(None, TEAM_ID, name="Milk")

    assert exc.value.status_code == 401
    assert inventory_repository.products == {}


def test_non_member_cannot_touch_team_resources(coordinator) -> None:
    with pytest.raises(NotMember):
        coordinator.list_products("stranger", TEAM_ID)


# Products


def test_repositor_product_lands_in_assigned_store(coordinator, team_repository, inventory_repository) -> None:
    team_repository.add_store(TEAM_ID, "s1", members=["repositor-1"])
    team_repository.add_store(TEAM_ID, "s2")

    product = coordinator.create_product("repositor-1", TEAM_ID, name="  Cheese ", code="123", store_id="s2")

    assert product.id in inventory_repository.products
    assert product.name == "Cheese"
    assert product.store.id == "s1"


def test_manager_may_target_any_team_store(coordinator, team_repository) -> None:
    team_repository.add_store(TEAM_ID, "s2")

    product = coordinator.create_product("manager-1", TEAM_ID, name="Cheese", store_id="s2")

    assert product.store.id == "s2"


def test_create_product_resolves_brand_by_id(coordinator, stocked_inventory) -> None:
    product = coordinator.create_product("supervisor-1", TEAM_ID, name="Butter", brand_id="br1")

    assert product.brand.name == "Acme"


def test_create_product_links_category(coordinator, inventory_repository) -> None:
    inventory_repository.add_category(TEAM_ID, "c1", "Dairy")

    product = coordinator.create_product("repositor-1", TEAM_ID, name="Butter", category_id="c1")

    assert product.category.name == "Dairy"
    assert inventory_repository.products[product.id].category.id == "c1"


@pytest.mark.parametrize("category_id", ["c-missing", "c-foreign"])
def test_unknown_or_foreign_category_is_not_found(coordinator, inventory_repository, category_id) -> None:
    inventory_repository.add_category("other-team", "c-foreign", "Frozen")

    with pytest.raises(NotFound) as exc:
        coordinator.create_product("manager-1", TEAM_ID, name="Butter", category_id=category_id)

    assert exc.value.message == "Category was not found"
    assert inventory_repository.products == {}


def test_create_product_requires_a_name(coordinator) -> None:
    with pytest.raises(ValidationError):
        coordinator.create_product("manager-1", TEAM_ID, name="   ")


def test_create_product_in_unknown_team_is_not_found(coordinator, team_repository) -> None:
    team_repository.add_member("ghost-team", "manager-1", Role.MANAGER)

    with pytest.raises(NotFound):
        coordinator.create_product("manager-1", "ghost-team", name="Milk")


def test_duplicate_code_in_same_store_is_a_conflict(coordinator, stocked_inventory) -> None:
    with pytest.raises(Conflict) as exc:
        coordinator.create_product("manager-1", TEAM_ID, name="Milk again", code="789")

    assert exc.value.message == "This product already exists. Try add a new batch"
    assert exc.value.payload["product_id"] == "p1"


def test_same_code_in_another_store_is_allowed(coordinator, team_repository, stocked_inventory) -> None:
    team_repository.add_store(TEAM_ID, "s1")

    product = coordinator.create_product("manager-1", TEAM_ID, name="Milk", code="789", store_id="s1")

    assert product.store == Store(id="s1", name="Store s1", team_id=TEAM_ID)


def test_create_product_invalidates_cached_product_list(coordinator, cache_backend, stocked_inventory) -> None:
    assert [product.id for product in coordinator.list_products("repositor-1", TEAM_ID)] == ["p1"]
    assert "team:team-1:products" in cache_backend.keys()

    created = coordinator.create_product("repositor-1", TEAM_ID, name="Bread")

    assert "team:team-1:products" not in cache_backend.keys()
    assert [product.id for product in coordinator.list_products("repositor-1", TEAM_ID)] == ["p1", created.id]


def test_get_product_orders_batches_and_serves_from_cache(coordinator, stocked_inventory) -> None:
    first = coordinator.get_product("repositor-1", TEAM_ID, "p1")
    reads_after_first = stocked_inventory.product_reads
    second = coordinator.get_product("repositor-1", TEAM_ID, "p1")

    assert [batch.id for batch in first.batches] == ["b-early", "b-late"]
    assert second == first
    assert stocked_inventory.product_reads == reads_after_first


def test_get_product_from_another_team_is_not_found(coordinator, team_repository, inventory_repository) -> None:
    inventory_repository.add_product("team-2", "p9")

    with pytest.raises(NotFound):
        coordinator.get_product("manager-1", TEAM_ID, "p9")


# Batches


def test_batch_discount_is_visible_on_next_read(coordinator, stocked_inventory) -> None:
    coordinator.list_products("repositor-1", TEAM_ID)
    coordinator.get_product("repositor-1", TEAM_ID, "p1")

    updated = coordinator.update_batch_discount("repositor-1", "b-early", 1.99)

    assert updated.temp_price == 1.99
    product = coordinator.get_product("repositor-1", TEAM_ID, "p1")
    assert product.batches[0].temp_price == 1.99
    listed = coordinator.list_products("repositor-1", TEAM_ID)
    assert listed[0].batches[0].temp_price == 1.99


def test_batch_discount_can_be_cleared(coordinator, stocked_inventory) -> None:
    coordinator.update_batch_discount("manager-1", "b-early", 2.5)

    cleared = coordinator.update_batch_discount("manager-1", "b-early", None)

    assert cleared.temp_price is None


def test_batch_discount_rejects_negative_price(coordinator, stocked_inventory) -> None:
    with pytest.raises(ValidationError):
        coordinator.update_batch_discount("manager-1", "b-early", -1)


def test_batch_discount_on_unknown_batch_is_not_found(coordinator) -> None:
    with pytest.raises(NotFound):
        coordinator.update_batch_discount("manager-1", "missing", 1.0)


def test_batch_discount_requires_membership_in_owning_team(coordinator, team_repository, inventory_repository) -> None:
    team_repository.add_team("team-2")
    inventory_repository.add_product("team-2", "p9")
    inventory_repository.add_batch("p9", "b9", date(2024, 6, 1))

    with pytest.raises(NotMember):
        coordinator.update_batch_discount("manager-1", "b9", 1.0)


def test_failed_invalidation_does_not_roll_back_the_write(
    coordinator, cache_backend, stocked_inventory, caplog
) -> None:
    stale = coordinator.get_product("repositor-1", TEAM_ID, "p1")
    cache_backend.failing_deletes.add("team:team-1:product:p1")

    with caplog.at_level(logging.WARNING):
        updated = coordinator.update_batch_discount("repositor-1", "b-early", 0.5)

    assert updated.temp_price == 0.5
    assert stocked_inventory.batches["b-early"].temp_price == 0.5
    assert "Stale cache keys" in caplog.text
    assert coordinator.get_product("repositor-1", TEAM_ID, "p1") == stale


def test_invalidation_retry_recovers_from_transient_failure(coordinator, cache_backend, stocked_inventory) -> None:
    coordinator.list_products("repositor-1", TEAM_ID)
    coordinator.get_product("repositor-1", TEAM_ID, "p1")
    cache_backend.delete_failures_remaining = 1

    coordinator.update_batch_discount("repositor-1", "b-early", 0.5)

    assert coordinator.list_products("repositor-1", TEAM_ID)[0].batches[0].temp_price == 0.5
    assert coordinator.get_product("repositor-1", TEAM_ID, "p1").batches[0].temp_price == 0.5


def test_create_batches_adds_to_product(coordinator, stocked_inventory) -> None:
    coordinator.get_product("supervisor-1", TEAM_ID, "p1")
    drafts = [BatchDraft(expiry_date=date(2024, 5, 12), amount=3)]

    created = coordinator.create_batches("supervisor-1", "p1", drafts)

    assert len(created) == 1
    assert created[0].product_id == "p1"
    product = coordinator.get_product("supervisor-1", TEAM_ID, "p1")
    assert product.batches[0].id == created[0].id


def test_create_batches_requires_at_least_one_batch(coordinator, stocked_inventory) -> None:
    with pytest.raises(ValidationError):
        coordinator.create_batches("manager-1", "p1", [])


# Subscription enforcement


def test_enforced_subscription_blocks_inventory_writes_when_expired(coordinator, billing_source) -> None:
    billing_source.tiers[TEAM_ID] = {
        "expirybusiness_monthly_default_5people": TierEntry(expires_date=NOW - timedelta(days=2)),
    }
    enforcing = replace(coordinator, enforce_subscription=True)

    with pytest.raises(SubscriptionExpired):
        enforcing.create_product("manager-1", TEAM_ID, name="Milk")
    coordinator.create_product("manager-1", TEAM_ID, name="Milk")


def test_enforced_subscription_requires_a_tier(coordinator, billing_source) -> None:
    billing_source.tiers.clear()
    enforcing = replace(coordinator, enforce_subscription=True)

    with pytest.raises(NoSubscription):
        enforcing.create_brands("manager-1", TEAM_ID, ["Acme"])


# Brands


def test_create_brands_skips_existing_names_case_insensitively(coordinator, cache_backend, stocked_inventory) -> None:
    coordinator.list_brands("repositor-1", TEAM_ID)

    created = coordinator.create_brands("repositor-1", TEAM_ID, ["ACME", "Nestle", " nestle ", ""])

    assert [brand.name for brand in created] == ["Nestle"]
    assert "team:team-1:brands" not in cache_backend.keys()
    assert sorted(brand.name for brand in coordinator.list_brands("repositor-1", TEAM_ID)) == ["Acme", "Nestle"]


def test_create_brands_with_nothing_new_writes_nothing(coordinator, cache_backend, stocked_inventory) -> None:
    coordinator.list_brands("repositor-1", TEAM_ID)

    assert coordinator.create_brands("repositor-1", TEAM_ID, ["acme"]) == []
    assert "team:team-1:brands" in cache_backend.keys()


# Members


def test_manager_sees_full_member_records(coordinator) -> None:
    members = coordinator.list_team_members("manager-1", TEAM_ID)

    assert all(isinstance(member, TeamMember) for member in members)
    assert {member.id for member in members} == {"manager-1", "supervisor-1", "repositor-1"}


def test_other_roles_see_redacted_member_records(coordinator) -> None:
    members = coordinator.list_team_members("repositor-1", TEAM_ID)

    assert all(type(member) is TeamMemberSummary for member in members)
    assert set(members[0].model_dump()) == {"id", "email", "role", "status"}


def test_role_update_invalidates_member_list(coordinator, cache_backend) -> None:
    coordinator.list_team_members("manager-1", TEAM_ID)
    assert "team:team-1:members" in cache_backend.keys()

    updated = coordinator.update_member_role("manager-1", TEAM_ID, "repositor-1", " Supervisor ")

    assert updated.role is Role.SUPERVISOR
    assert "team:team-1:members" not in cache_backend.keys()
    roles = {member.id: member.role for member in coordinator.list_team_members("manager-1", TEAM_ID)}
    assert roles["repositor-1"] is Role.SUPERVISOR


def test_only_managers_update_roles(coordinator) -> None:
    with pytest.raises(Forbidden):
        coordinator.update_member_role("supervisor-1", TEAM_ID, "repositor-1", "manager")


def test_invalid_role_is_a_conflict(coordinator) -> None:
    with pytest.raises(Conflict):
        coordinator.update_member_role("manager-1", TEAM_ID, "repositor-1", "admin")


def test_role_update_for_unknown_member_is_not_found(coordinator) -> None:
    with pytest.raises(NotFound):
        coordinator.update_member_role("manager-1", TEAM_ID, "nobody", "supervisor")


def test_remove_member_clears_store_assignments(coordinator, team_repository) -> None:
    team_repository.add_store(TEAM_ID, "s1", members=["repositor-1"])

    coordinator.remove_member("manager-1", TEAM_ID, "repositor-1")

    assert team_repository.get_membership(TEAM_ID, "repositor-1") is None
    assert team_repository.removed_from_stores == [(TEAM_ID, "repositor-1")]
    assert team_repository.get_user_store(TEAM_ID, "repositor-1") is None


@pytest.mark.parametrize("caller", ["manager-1", "supervisor-1", "repositor-1"])
def test_managers_cannot_be_removed_by_any_role(coordinator, team_repository, caller) -> None:
    team_repository.add_member(TEAM_ID, "manager-2", Role.MANAGER)

    with pytest.raises(Conflict) as exc:
        coordinator.remove_member(caller, TEAM_ID, "manager-2")

    assert exc.value.message == "You cannot remove a manager from team"
    assert team_repository.get_membership(TEAM_ID, "manager-2") is not None


def test_only_managers_remove_members(coordinator) -> None:
    with pytest.raises(Forbidden):
        coordinator.remove_member("supervisor-1", TEAM_ID, "repositor-1")


@pytest.mark.parametrize("target", ["manager-1", "repositor-1", "nobody"])
def test_non_member_removal_is_rejected_before_target_lookup(coordinator, team_repository, target) -> None:
    with pytest.raises(NotMember):
        coordinator.remove_member("stranger", TEAM_ID, target)

    assert team_repository.get_membership(TEAM_ID, "repositor-1") is not None


def test_remove_member_refreshes_cached_member_list(coordinator, cache_backend) -> None:
    coordinator.list_team_members("manager-1", TEAM_ID)
    assert "team:team-1:members" in cache_backend.keys()

    coordinator.remove_member("manager-1", TEAM_ID, "repositor-1")

    assert "team:team-1:members" not in cache_backend.keys()
    member_ids = [member.id for member in coordinator.list_team_members("manager-1", TEAM_ID)]
    assert "repositor-1" not in member_ids


def test_accepting_invite_completes_membership(coordinator, team_repository, cache_backend) -> None:
    team_repository.add_member(TEAM_ID, "invitee", status=MembershipStatus.INVITED, invite_code="XYZ789")
    coordinator.list_team_members("manager-1", TEAM_ID)

    membership = coordinator.accept_team_invite("invitee", TEAM_ID, "XYZ789")

    assert membership.status is MembershipStatus.COMPLETED
    assert "team:team-1:members" not in cache_backend.keys()
    coordinator.list_products("invitee", TEAM_ID)


def test_accepting_invite_with_wrong_code_is_a_conflict(coordinator, team_repository) -> None:
    team_repository.add_member(TEAM_ID, "invitee", status=MembershipStatus.INVITED, invite_code="XYZ789")

    with pytest.raises(Conflict):
        coordinator.accept_team_invite("invitee", TEAM_ID, "WRONG1")

    assert team_repository.get_membership(TEAM_ID, "invitee").status is MembershipStatus.INVITED


def test_accepting_without_invite_is_not_member(coordinator) -> None:
    with pytest.raises(NotMember):
        coordinator.accept_team_invite("stranger", TEAM_ID, "XYZ789")


def test_accepting_requires_a_code(coordinator) -> None:
    with pytest.raises(ValidationError):
        coordinator.accept_team_invite("invitee", TEAM_ID, "  ")


def test_accepting_twice_is_idempotent(coordinator, team_repository) -> None:
    team_repository.add_member(TEAM_ID, "invitee", status=MembershipStatus.INVITED, invite_code="XYZ789")
    first = coordinator.accept_team_invite("invitee", TEAM_ID, "XYZ789")

    second = coordinator.accept_team_invite("invitee", TEAM_ID, "XYZ789")

    assert second == first


def test_invite_member_creates_pending_membership(coordinator, team_repository) -> None:
    team_repository.add_user("newcomer", email="New.Comer@example.com")

    membership = coordinator.invite_member("manager-1", TEAM_ID, " new.comer@EXAMPLE.com ")

    assert membership.user_id == "newcomer"
    assert membership.status is MembershipStatus.INVITED
    assert membership.role is Role.REPOSITOR
    assert membership.invite_code == "ABC123"


def test_invite_member_refreshes_cached_member_list(coordinator, team_repository, cache_backend) -> None:
    team_repository.add_user("newcomer")
    coordinator.list_team_members("manager-1", TEAM_ID)
    assert "team:team-1:members" in cache_backend.keys()

    coordinator.invite_member("manager-1", TEAM_ID, "newcomer@example.com")

    assert "team:team-1:members" not in cache_backend.keys()
    members = {member.id: member for member in coordinator.list_team_members("manager-1", TEAM_ID)}
    assert members["newcomer"].status is MembershipStatus.INVITED


def test_invite_member_respects_tier_capacity(coordinator, team_repository) -> None:
    team_repository.add_member(TEAM_ID, "extra-1")
    team_repository.add_member(TEAM_ID, "extra-2", status=MembershipStatus.INVITED)
    team_repository.add_user("newcomer")

    with pytest.raises(Conflict) as exc:
        coordinator.invite_member("manager-1", TEAM_ID, "newcomer@example.com")

    assert exc.value.payload["limit"] == 5
    assert exc.value.payload["members"] == 5


def test_invite_unknown_user_is_not_found(coordinator) -> None:
    with pytest.raises(NotFound):
        coordinator.invite_member("manager-1", TEAM_ID, "ghost@example.com")


def test_invite_existing_member_is_a_conflict(coordinator) -> None:
    with pytest.raises(Conflict):
        coordinator.invite_member("manager-1", TEAM_ID, "supervisor-1@example.com")


def test_only_managers_invite(coordinator, team_repository) -> None:
    team_repository.add_user("newcomer")

    with pytest.raises(Forbidden):
        coordinator.invite_member("supervisor-1", TEAM_ID, "newcomer@example.com")


# Teams


def test_delete_team_removes_inventory_and_every_cached_key(
    coordinator, team_repository, cache_backend, stocked_inventory
) -> None:
    coordinator.list_products("manager-1", TEAM_ID)
    coordinator.get_product("manager-1", TEAM_ID, "p1")
    coordinator.list_brands("manager-1", TEAM_ID)
    coordinator.list_team_members("manager-1", TEAM_ID)
    assert _team_keys(cache_backend) == [
        "team:team-1",
        "team:team-1:brands",
        "team:team-1:members",
        "team:team-1:product:p1",
        "team:team-1:products",
    ]

    coordinator.delete_team("manager-1", TEAM_ID)

    assert _team_keys(cache_backend) == []
    assert team_repository.deleted_teams == [TEAM_ID]
    assert stocked_inventory.products == {}
    assert stocked_inventory.batches == {}
    assert stocked_inventory.brands == {}
    with pytest.raises(NotMember):
        coordinator.list_products("manager-1", TEAM_ID)


def test_only_managers_delete_teams(coordinator, team_repository) -> None:
    with pytest.raises(Forbidden):
        coordinator.delete_team("supervisor-1", TEAM_ID)

    assert team_repository.deleted_teams == []


def test_subscription_queries_require_membership(coordinator) -> None:
    assert coordinator.is_team_active("repositor-1", TEAM_ID) is True
    limit = coordinator.check_member_limit("repositor-1", TEAM_ID)
    assert (limit.limit, limit.members) == (5, 3)

    with pytest.raises(NotMember):
        coordinator.is_team_active("stranger", TEAM_ID)

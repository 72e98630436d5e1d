from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError
from sqlmodel import Session

import store
from actions import items as item_actions
from errors import NotFound
from models import Category, Item, ItemStatus, Role, utcnow
from schemas import ItemCreate, ItemFilters, ItemUpdate, Recency


def _update(**overrides) -> ItemUpdate:
    data = {
        "title": "Red umbrella",
        "description": "Repainted",
        "category": Category.ACCESSORIES,
        "status": ItemStatus.FOUND,
        "location": "Cafeteria",
        "contact_number": "+1 555 0199",
    }
    data.update(overrides)
    return ItemUpdate(**data)


def _snapshot(item: Item) -> dict:
    return {field: getattr(item, field) for field in Item.model_fields}


@pytest.fixture
def people(make_user):
    return {
        "owner": make_user("owner@uni.edu"),
        "other": make_user("other@uni.edu"),
        "admin": make_user("root@uni.edu", role=Role.ADMIN),
    }


def test_create_item_sets_owner_and_defaults(session, people) -> None:
    result = item_actions.create_item(
        session,
        people["owner"],
        ItemCreate(
            title="Calculator",
            description="TI-84",
            category=Category.ELECTRONICS,
            status=ItemStatus.FOUND,
            location="Room 101",
            contact_number="555",
        ),
    )

    assert result.success
    item = result.data
    assert item.user_id == people["owner"].id
    assert item.is_resolved is False
    assert item.image_url is None


def test_owner_can_update_item(session, people, make_item) -> None:
    item = make_item(people["owner"])
    created_at = item.created_at

    result = item_actions.update_item(session, people["owner"], item.id, _update())

    assert result.success
    assert result.data.title == "Red umbrella"
    assert result.data.status == ItemStatus.FOUND
    assert result.data.created_at == created_at
    assert result.data.updated_at >= created_at


def test_update_without_new_image_keeps_old_one(session, people, make_item) -> None:
    item = make_item(people["owner"], image_url="/uploads/old.jpg")

    result = item_actions.update_item(session, people["owner"], item.id, _update())

    assert result.data.image_url == "/uploads/old.jpg"


@pytest.mark.parametrize(
    "mutate",
    [
        lambda s, u, i: item_actions.update_item(s, u, i, _update()),
        lambda s, u, i: item_actions.delete_item(s, u, i),
        lambda s, u, i: item_actions.mark_item_as_resolved(s, u, i, True),
    ],
    ids=["update", "delete", "resolve"],
)
def test_non_owner_student_is_rejected_and_item_unchanged(session, people, make_item, mutate) -> None:
    item = make_item(people["owner"])
    before = _snapshot(item)

    result = mutate(session, people["other"], item.id)

    assert not result.success
    assert result.error == "Unauthorized"
    assert result.status_code == 403
    with Session(session.get_bind()) as fresh:
        assert _snapshot(fresh.get(Item, item.id)) == before


@pytest.mark.parametrize(
    "mutate",
    [
        lambda s, u, i: item_actions.update_item(s, u, i, _update()),
        lambda s, u, i: item_actions.mark_item_as_resolved(s, u, i, True),
        lambda s, u, i: item_actions.delete_item(s, u, i),
    ],
    ids=["update", "resolve", "delete"],
)
def test_admin_can_modify_any_item(session, people, make_item, mutate) -> None:
    item = make_item(people["owner"])

    assert mutate(session, people["admin"], item.id).success


@pytest.mark.parametrize(
    "mutate",
    [
        lambda s, u: item_actions.update_item(s, u, 999, _update()),
        lambda s, u: item_actions.delete_item(s, u, 999),
        lambda s, u: item_actions.mark_item_as_resolved(s, u, 999, True),
    ],
    ids=["update", "delete", "resolve"],
)
def test_missing_item_is_not_found(session, people, mutate) -> None:
    result = mutate(session, people["owner"])

    assert not result.success
    assert result.error == "Item not found"
    assert result.status_code == 404


def test_resolved_flag_is_independent_of_status(session, people, make_item) -> None:
    item = make_item(people["owner"], status=ItemStatus.LOST)

    resolved = item_actions.mark_item_as_resolved(session, people["owner"], item.id, True)
    assert resolved.data.is_resolved is True
    assert resolved.data.status == ItemStatus.LOST

    reopened = item_actions.mark_item_as_resolved(session, people["owner"], item.id, False)
    assert reopened.data.is_resolved is False


def test_lost_and_found_scenario(session, make_user, make_item) -> None:
    student_a = make_user("a@uni.edu")
    admin_b = make_user("b@uni.edu", role=Role.ADMIN)
    student_c = make_user("c@uni.edu")
    item_x = make_item(student_a, status=ItemStatus.LOST)
    assert item_x.is_resolved is False

    assert item_actions.mark_item_as_resolved(session, student_a, item_x.id, True).success
    assert store.find_item_by_id(session, item_x.id).is_resolved is True

    denied = item_actions.delete_item(session, student_c, item_x.id)
    assert not denied.success
    assert denied.error == "Unauthorized"
    assert store.find_item_by_id(session, item_x.id) is not None

    assert item_actions.delete_item(session, admin_b, item_x.id).success
    assert store.find_item_by_id(session, item_x.id) is None


def test_delete_item_removes_stored_image(session, people, make_item, monkeypatch) -> None:
    removed = []
    monkeypatch.setattr(item_actions, "delete_image", removed.append)
    item = make_item(people["owner"], image_url="/uploads/photo.png")

    item_actions.delete_item(session, people["owner"], item.id)

    assert removed == ["/uploads/photo.png"]


def test_replacing_image_deletes_previous_file(session, people, make_item, monkeypatch) -> None:
    removed = []
    monkeypatch.setattr(item_actions, "delete_image", removed.append)
    item = make_item(people["owner"], image_url="/uploads/old.png")

    item_actions.update_item(session, people["owner"], item.id, _update(), image_url="/uploads/new.png")

    assert removed == ["/uploads/old.png"]



def test_deleting_an_already_deleted_item_is_not_found(session, people, make_item) -> None:
    item = make_item(people["owner"])
    with Session(session.get_bind()) as other:
        store.delete_item(other, other.get(Item, item.id))

    with pytest.raises(NotFound):
        store.delete_item(session, item)


def test_uploaded_image_is_attached_on_create(session, people) -> None:
    result = item_actions.create_item(
        session,
        people["owner"],
        ItemCreate(
            title="Scarf", description="Wool", category=Category.CLOTHING,
            status=ItemStatus.FOUND, location="Bus stop", contact_number="555",
            image_url="/uploads/someone-else.png",
        ),
        image_url="/uploads/mine.png",
    )

    assert result.data.image_url == "/uploads/mine.png"

def test_store_failure_is_reported_generically(session, people, monkeypatch) -> None:
    def broken(*args, **kwargs):
        raise OperationalError("INSERT INTO item", {}, Exception("disk I/O error"))

    monkeypatch.setattr(store, "create_item", broken)

    result = item_actions.create_item(
        session,
        people["owner"],
        ItemCreate(
            title="x", description="x", category=Category.OTHER,
            status=ItemStatus.LOST, location="x", contact_number="x",
        ),
    )

    assert not result.success
    assert result.error == "Failed to create item"
    assert "disk" not in result.error


def test_get_items_newest_first_and_filtered(session, people, make_item) -> None:
    old = make_item(people["owner"], title="Old keys", category=Category.KEYS)
    old.created_at = utcnow() - timedelta(days=40)
    session.add(old)
    session.commit()
    make_item(people["other"], title="New keys", category=Category.KEYS)
    make_item(people["other"], title="Jacket", category=Category.CLOTHING)

    everything = item_actions.get_items(session)
    assert [item.title for item in everything] == ["Jacket", "New keys", "Old keys"]

    keys = item_actions.get_items(session, ItemFilters(search="KEYS", category=Category.KEYS))
    assert [item.title for item in keys] == ["New keys", "Old keys"]

    recent = item_actions.get_items(session, ItemFilters(category=Category.KEYS, posted_within=Recency.MONTH))
    assert [item.title for item in recent] == ["New keys"]


def test_get_items_returns_empty_list_on_store_failure(session, monkeypatch) -> None:
    def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("gone"))

    monkeypatch.setattr(store, "find_many_items", broken)

    assert item_actions.get_items(session) == []


def test_get_user_items_only_returns_own(session, people, make_item) -> None:
    make_item(people["owner"], title="Mine")
    make_item(people["other"], title="Theirs")

    mine = item_actions.get_user_items(session, people["owner"])

    assert [item.title for item in mine] == ["Mine"]

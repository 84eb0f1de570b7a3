import pytest

from lumi.guests import GuestMergeEngine, TrustLevel, plan_merge, split_name
from lumi.store import GuestProfile, InMemoryRecordStore


def _guest(**fields) -> GuestProfile:
    return GuestProfile(id="recGuest", email="ana@example.com", first_name="Ana", **fields)


def test_set_fields_are_unioned():
    guest = _guest(dietary_restrictions=["vegan"])
    changes = plan_merge(
        guest, {"dietary_restrictions": ["gluten-free", "vegan"]}, TrustLevel.RETREAT_CONTEXT
    )
    assert changes == {"dietary_restrictions": ["vegan", "gluten-free"]}


def test_set_merges_commute():
    start = _guest(allergies=["shellfish"])
    first = {"allergies": ["nuts"]}
    second = {"allergies": ["dairy", "nuts"]}

    a = start.model_copy(update=plan_merge(start, first, TrustLevel.RETREAT_CONTEXT))
    a = a.model_copy(update=plan_merge(a, second, TrustLevel.RETREAT_CONTEXT))
    b = start.model_copy(update=plan_merge(start, second, TrustLevel.RETREAT_CONTEXT))
    b = b.model_copy(update=plan_merge(b, first, TrustLevel.RETREAT_CONTEXT))

    assert set(a.allergies) == set(b.allergies) == {"shellfish", "nuts", "dairy"}


def test_reapplying_an_update_changes_nothing(fixed_now):
    start = _guest(wellness_goals=["sleep"])
    update = {"wellness_goals": ["stress relief"], "notes": "Prefers morning yoga"}

    changes = plan_merge(start, update, TrustLevel.CHECKIN_DERIVED, fixed_now)
    merged = start.model_copy(update=changes)
    assert merged.notes == "[2025-03-10] Prefers morning yoga"

    assert plan_merge(merged, update, TrustLevel.CHECKIN_DERIVED, fixed_now) == {}


def test_checkin_derived_updates_cannot_touch_medical_fields():
    guest = _guest(allergies=["nuts"])
    changes = plan_merge(
        guest,
        {"allergies": ["none"], "dietary_restrictions": ["keto"], "wellness_goals": ["energy"]},
        TrustLevel.CHECKIN_DERIVED,
    )
    assert changes == {"wellness_goals": ["energy"]}


def test_retreat_context_cannot_rename_guest():
    changes = plan_merge(_guest(), {"first_name": "Anna", "past_visits": 2}, TrustLevel.RETREAT_CONTEXT)
    assert changes == {"past_visits": 2}


def test_authoritative_replaces_sets_and_scalars():
    guest = _guest(dietary_restrictions=["vegan", "keto"])
    changes = plan_merge(
        guest,
        {"dietary_restrictions": ["vegetarian"], "first_name": "Anna", "unknown_field": 1},
        TrustLevel.AUTHORITATIVE,
    )
    assert changes == {"dietary_restrictions": ["vegetarian"], "first_name": "Anna"}


def test_notes_append_dated_lines(fixed_now):
    guest = _guest(notes="[2025-03-01] Arrived tired")
    changes = plan_merge(guest, {"notes": "Sleeping better"}, TrustLevel.CHECKIN_DERIVED, fixed_now)
    assert changes["notes"] == "[2025-03-01] Arrived tired\n[2025-03-10] Sleeping better"


def test_split_name():
    assert split_name("Ana Maria Lopez") == ("Ana", "Maria Lopez")
    assert split_name("Ana") == ("Ana", "")
    assert split_name(None) == ("", "")


@pytest.mark.asyncio
async def test_merge_update_skips_missing_guest():
    store = InMemoryRecordStore()
    engine = GuestMergeEngine(store)

    result = await engine.merge_update("ghost@example.com", {"allergies": ["nuts"]}, TrustLevel.AUTHORITATIVE)

    assert not result.found
    assert store.guests == []


@pytest.mark.asyncio
async def test_merge_update_can_provision_guest(fixed_now):
    store = InMemoryRecordStore()
    engine = GuestMergeEngine(store, clock=lambda: fixed_now)

    result = await engine.merge_update(
        "Ana@Example.com",
        {"room_preferences": ["suite"]},
        TrustLevel.RETREAT_CONTEXT,
        create_if_missing=True,
        full_name="Ana Lopez",
    )

    assert result.created
    assert result.fields_changed == ["room_preferences"]
    (guest,) = store.guests
    assert guest.email == "ana@example.com"
    assert (guest.first_name, guest.last_name) == ("Ana", "Lopez")
    assert guest.room_preferences == ["suite"]


@pytest.mark.asyncio
async def test_record_checkin_counts_and_stamps(fixed_now):
    store = InMemoryRecordStore()
    await store.create_guest(GuestProfile(email="ana@example.com", total_checkins=4))
    engine = GuestMergeEngine(store, clock=lambda: fixed_now)

    result = await engine.record_checkin("ANA@example.com")

    assert not result.created
    (guest,) = store.guests
    assert guest.total_checkins == 5
    assert guest.last_checkin_date == fixed_now.isoformat()

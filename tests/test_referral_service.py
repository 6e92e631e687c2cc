import pytest

from hoho.services import referral_service


def test_referral_awards_bonus_and_stamps_referred_user(fake_db, fake_firestore):
    fake_db.put("users", "ref", {"customizationsAllowed": 1, "customizationsUsed": 0})

    status = referral_service.award_referral_bonus(fake_db, "ref", "friend", firestore_module=fake_firestore)

    assert status == referral_service.STATUS_AWARDED
    assert fake_db.doc("users", "ref")["customizationsAllowed"] == 6
    friend = fake_db.doc("users", "friend")
    assert friend["referredBy"] == "ref"
    assert friend["customizationsAllowed"] == 0


def test_referral_is_awarded_only_once_per_referred_user(fake_db, fake_firestore):
    fake_db.put("users", "ref", {"customizationsAllowed": 0, "customizationsUsed": 0})
    fake_db.put("users", "other-ref", {"customizationsAllowed": 0, "customizationsUsed": 0})
    fake_db.put("users", "friend", {"customizationsAllowed": 0, "customizationsUsed": 0})

    first = referral_service.award_referral_bonus(fake_db, "ref", "friend", firestore_module=fake_firestore)
    second = referral_service.award_referral_bonus(fake_db, "ref", "friend", firestore_module=fake_firestore)
    third = referral_service.award_referral_bonus(fake_db, "other-ref", "friend", firestore_module=fake_firestore)

    assert first == referral_service.STATUS_AWARDED
    assert second == referral_service.STATUS_ALREADY_REFERRED
    assert third == referral_service.STATUS_ALREADY_REFERRED
    assert fake_db.doc("users", "ref")["customizationsAllowed"] == 5
    assert fake_db.doc("users", "other-ref")["customizationsAllowed"] == 0


def test_referral_with_unknown_referrer_changes_nothing(fake_db, fake_firestore):
    status = referral_service.award_referral_bonus(fake_db, "missing", "friend", firestore_module=fake_firestore)

    assert status == referral_service.STATUS_REFERRER_NOT_FOUND
    assert fake_db.doc("users", "missing") is None
    assert fake_db.doc("users", "friend") is None


def test_self_referral_is_rejected(fake_db, fake_firestore):
    fake_db.put("users", "me", {"customizationsAllowed": 0, "customizationsUsed": 0})

    status = referral_service.award_referral_bonus(fake_db, "me", "me", firestore_module=fake_firestore)

    assert status == referral_service.STATUS_SELF_REFERRAL
    assert fake_db.doc("users", "me")["customizationsAllowed"] == 0


def test_referral_requires_both_ids(fake_db, fake_firestore):
    with pytest.raises(ValueError):
        referral_service.award_referral_bonus(fake_db, "", "friend", firestore_module=fake_firestore)

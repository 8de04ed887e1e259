import pytest
from fastapi import HTTPException

from buzzsmile.services.credits import (
    add_credits,
    check_credits,
    credit_balance,
    deduct_credits,
    is_credit_exempt,
    set_post_launch,
)
from buzzsmile.utils.cache import user_cache
from conftest import run


def test_pre_launch_and_god_plan_are_exempt():
    assert is_credit_exempt({"isPreLaunch": True, "subscription": {"plan": "free"}})
    assert is_credit_exempt({"isPreLaunch": False, "subscription": {"plan": "god"}})
    assert not is_credit_exempt({"isPreLaunch": False, "subscription": {"plan": "free"}})


def test_credit_balance_handles_legacy_numbers():
    assert credit_balance({"credits": {"balance": 3}}) == 3
    assert credit_balance({"credits": 7}) == 7
    assert credit_balance({}) == 0


def test_check_credits_rejects_empty_balance():
    user = {"isPreLaunch": False, "credits": {"balance": 0, "used": 45}}
    with pytest.raises(HTTPException) as excinfo:
        run(check_credits(user))
    assert excinfo.value.status_code == 403
    assert excinfo.value.detail["message"] == "Insufficient credits"


def test_check_credits_passes_exempt_user_without_balance():
    run(check_credits({"isPreLaunch": True, "credits": {"balance": 0}}))


def test_check_credits_reads_balance_from_database(db, make_user):
    user = make_user(isPreLaunch=False, credits={"balance": 1, "used": 0})
    run(check_credits(user))

    run(db["users"].update_one({"_id": user["_id"]}, {"$set": {"credits.balance": 0}}))
    # the request's copy still says 1
    with pytest.raises(HTTPException) as excinfo:
        run(check_credits(user))
    assert excinfo.value.status_code == 403


def test_credit_writes_drop_cached_user(db, make_user):
    user = make_user(isPreLaunch=False)
    for write in (deduct_credits(user), add_credits(user["_id"], 3), set_post_launch(user["_id"])):
        user_cache[str(user["_id"])] = user
        run(write)
        assert str(user["_id"]) not in user_cache


def test_deduct_credits_updates_balance_and_used(db, make_user):
    user = make_user(isPreLaunch=False)
    assert run(deduct_credits(user, 2)) is True

    stored = run(db["users"].find_one({"_id": user["_id"]}))
    assert stored["credits"]["balance"] == 43
    assert stored["credits"]["used"] == 2


def test_deduct_credits_skips_exempt_users(db, make_user):
    user = make_user()  # pre-launch by default
    assert run(deduct_credits(user)) is False
    stored = run(db["users"].find_one({"_id": user["_id"]}))
    assert stored["credits"]["balance"] == 45


def test_add_credits_and_post_launch(db, make_user):
    user = make_user()
    assert run(add_credits(user["_id"], 5)) is True
    run(set_post_launch(user["_id"], 10))

    stored = run(db["users"].find_one({"_id": user["_id"]}))
    assert stored["isPreLaunch"] is False
    assert stored["credits"]["balance"] == 10

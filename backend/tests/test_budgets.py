from __future__ import annotations

from conftest import authenticate

BUDGETS_URL = "/api/v1/dashboard/budgets"


def _create_category(client, **overrides):
    payload = {"type": "Expenses", "name": "Groceries", "goal": 400, "month": 1, "year": 2025}
    payload.update(overrides)
    res = client.post(f"{BUDGETS_URL}/category", json=payload)
    assert res.status_code == 201
    return res.json()["budget_category_id"]


def test_budgets_are_organized_by_type(client):
    assert client.get(BUDGETS_URL).json() == {"Income": [], "Expenses": []}

    salary = _create_category(client, type="Income", name="Salary", goal=5000)
    groceries = _create_category(client)

    budgets = client.get(BUDGETS_URL).json()
    assert [c["budget_category_id"] for c in budgets["Income"]] == [salary]
    assert [c["budget_category_id"] for c in budgets["Expenses"]] == [groceries]
    assert budgets["Expenses"][0]["goals"] == [{"goal": 400.0, "month": 1, "year": 2025}]


def test_new_goal_is_visible_newest_first(client, fake_redis, users):
    user_a, _ = users
    category_id = _create_category(client)
    client.get(BUDGETS_URL)
    assert f"budgets:{user_a.user_id}" in fake_redis.store

    res = client.post(
        f"{BUDGETS_URL}/budget",
        json={"budget_category_id": category_id, "goal": 450, "month": 2, "year": 2025},
    )
    assert res.status_code == 201
    assert f"budgets:{user_a.user_id}" not in fake_redis.store

    goals = client.get(BUDGETS_URL).json()["Expenses"][0]["goals"]
    assert [(g["year"], g["month"]) for g in goals] == [(2025, 2), (2025, 1)]


def test_duplicate_goal_for_period_is_409(client):
    category_id = _create_category(client)

    res = client.post(
        f"{BUDGETS_URL}/budget",
        json={"budget_category_id": category_id, "goal": 450, "month": 1, "year": 2025},
    )

    assert res.status_code == 409


def test_goal_update_is_visible(client):
    category_id = _create_category(client)
    client.get(BUDGETS_URL)

    res = client.put(f"{BUDGETS_URL}/budget/{category_id}", json={"goal": 375.5, "month": 1, "year": 2025})
    assert res.status_code == 204

    assert client.get(BUDGETS_URL).json()["Expenses"][0]["goals"][0]["goal"] == 375.5


def test_goal_update_for_missing_period_is_404(client):
    category_id = _create_category(client)

    res = client.put(f"{BUDGETS_URL}/budget/{category_id}", json={"goal": 10, "month": 6, "year": 2030})

    assert res.status_code == 404
    assert "budget" in res.json()["errors"]


def test_category_update_and_reorder_are_visible(client):
    first = _create_category(client, name="Rent")
    second = _create_category(client, name="Utilities", category_order=1)
    client.get(BUDGETS_URL)

    assert client.put(f"{BUDGETS_URL}/category/{first}", json={"name": "Housing"}).status_code == 204
    assert client.put(f"{BUDGETS_URL}/category/ordering", json={"categories": [second, first]}).status_code == 204

    expenses = client.get(BUDGETS_URL).json()["Expenses"]
    assert [c["budget_category_id"] for c in expenses] == [second, first]
    assert expenses[1]["name"] == "Housing"


def test_category_type_change_moves_group(client):
    category_id = _create_category(client)
    client.get(BUDGETS_URL)

    client.put(f"{BUDGETS_URL}/category/{category_id}", json={"type": "Income"})

    budgets = client.get(BUDGETS_URL).json()
    assert budgets["Expenses"] == []
    assert budgets["Income"][0]["budget_category_id"] == category_id


def test_category_delete_removes_goals(client, run_db):
    category_id = _create_category(client)
    client.get(BUDGETS_URL)

    assert client.delete(f"{BUDGETS_URL}/category/{category_id}").status_code == 204

    assert client.get(BUDGETS_URL).json() == {"Income": [], "Expenses": []}

    from sqlalchemy import func, select

    from capital.models.budget import Budget

    remaining = run_db(lambda db: _scalar(db, select(func.count()).select_from(Budget)))
    assert remaining == 0


async def _scalar(db, stmt):
    return (await db.execute(stmt)).scalar_one()


def test_other_users_category_is_not_found(client, users):
    category_id = _create_category(client)
    _, user_b = users
    client.cookies.clear()
    authenticate(client, user_b.user_id)

    assert client.put(f"{BUDGETS_URL}/category/{category_id}", json={"name": "Mine"}).status_code == 404
    assert client.delete(f"{BUDGETS_URL}/category/{category_id}").status_code == 404

    res = client.post(
        f"{BUDGETS_URL}/budget",
        json={"budget_category_id": category_id, "goal": 1, "month": 3, "year": 2025},
    )
    assert res.status_code == 404
    assert "budget_category" in res.json()["errors"]


def test_invalid_category_type_is_400(client):
    res = client.post(
        f"{BUDGETS_URL}/category",
        json={"type": "Savings", "name": "Bad", "goal": 1, "month": 13, "year": 2025},
    )

    assert res.status_code == 400
    assert {"type", "month"} <= set(res.json()["errors"])

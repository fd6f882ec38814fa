from bootstrap import build_application


def test_alice_scenario(tmp_path):
    app = build_application(tmp_path)
    controller = app.controller

    controller.register("alice", "secret1")
    session = controller.login("alice", "secret1")
    controller.create_wallet(session, "Cash", "100")
    controller.add_category(session, "Food", "50")
    expense = controller.add_transaction(session, "Cash", "20", "Food", is_income=False)

    (cash,) = controller.load_wallets(session)
    assert cash.balance == 80.0
    (food,) = controller.budget_state(session)
    assert (food.spent, food.remaining) == (20.0, 30.0)

    controller.edit_transaction(
        session, "Cash", expense.id, "-50", "Food", expense.date.isoformat()
    )
    (cash,) = controller.load_wallets(session)
    assert cash.balance == 50.0
    (food,) = controller.budget_state(session)
    assert (food.spent, food.remaining) == (50.0, 0.0)
    assert controller.budget_warnings(session) == ["Total expenses exceed total income"]


def test_state_survives_restart(tmp_path):
    first = build_application(tmp_path).controller
    first.register("alice", "secret1")
    session = first.login("alice", "secret1")
    first.create_wallet(session, "Cash", "100")
    first.add_transaction(session, "Cash", "250", "Salary", is_income=True)

    second = build_application(tmp_path).controller
    session = second.login("alice", "secret1")
    (cash,) = second.load_wallets(session)
    assert cash.balance == 350.0
    assert cash.initial_balance == 100.0
    assert second.totals_by_category(session) == {"Salary": 250.0}

import json
import random
from unittest.mock import Mock

import pytest

from app.use_cases import (
    AddCategory,
    AddTransaction,
    CalculateBudgetState,
    CalculateByCategories,
    CalculateFinances,
    CreateWallet,
    DeleteTransaction,
    EditTransaction,
    GetCategories,
    GetWallets,
    ListTransactions,
    RemoveCategory,
    RemoveWallet,
    RenameCategory,
    RenameWallet,
    SetWalletBalance,
    TransferFunds,
    UpdateBudgetLimit,
)
from domain.errors import (
    ConflictError,
    InsufficientFundsError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from domain.transactions import TRANSFER_CATEGORY
from domain.users import User
from infrastructure.repositories import (
    JsonCategoryRepository,
    JsonUserRepository,
    JsonWalletRepository,
    WalletRepository,
)


@pytest.fixture
def repos(tmp_path):
    users = JsonUserRepository(str(tmp_path / "users.json"))
    categories = JsonCategoryRepository(str(tmp_path / "categories.json"))
    wallets = JsonWalletRepository(str(tmp_path / "wallets"), category_repository=categories)
    users.save_all([User("alice", "secret1"), User("bob_1", "secret2")])
    return users, wallets, categories


def _snapshot(tmp_path):
    files = sorted(p for p in tmp_path.rglob("*.json"))
    return {str(p): p.read_text(encoding="utf-8") for p in files}


def _add(wallets, categories, amount, category="Food", *, is_income=False, wallet="Cash", date=None):
    return AddTransaction(wallets, categories).execute(
        owner_id="alice",
        wallet_name=wallet,
        amount=amount,
        category=category,
        is_income=is_income,
        date=date,
    )


def _wallet(wallets, name="Cash", owner="alice"):
    return next(w for w in GetWallets(wallets).execute(owner) if w.name == name)


class TestWallets:
    def test_create_and_list(self, repos):
        _, wallets, _ = repos
        created = CreateWallet(wallets).execute(owner_id="alice", name=" Cash ", initial_balance="100")
        assert created.name == "Cash"
        assert created.balance == 100.0
        assert [w.name for w in GetWallets(wallets).execute("alice")] == ["Cash"]
        assert GetWallets(wallets).execute("bob_1") == []

    @pytest.mark.parametrize("balance", ["-1", "100000000.01", "abc"])
    def test_create_rejects_bad_balance(self, repos, balance):
        _, wallets, _ = repos
        with pytest.raises(ValidationError):
            CreateWallet(wallets).execute(owner_id="alice", name="Cash", initial_balance=balance)

    def test_create_rejects_bad_name(self, repos):
        _, wallets, _ = repos
        with pytest.raises(ValidationError):
            CreateWallet(wallets).execute(owner_id="alice", name=" ", initial_balance=0)
        with pytest.raises(ValidationError):
            CreateWallet(wallets).execute(owner_id="alice", name="w" * 51, initial_balance=0)

    def test_duplicate_name_leaves_store_unchanged(self, repos, tmp_path):
        _, wallets, _ = repos
        CreateWallet(wallets).execute(owner_id="alice", name="Cash", initial_balance=100)
        before = _snapshot(tmp_path)
        with pytest.raises(ConflictError):
            CreateWallet(wallets).execute(owner_id="alice", name="Cash", initial_balance=5)
        assert _snapshot(tmp_path) == before

    def test_same_name_for_different_owners(self, repos):
        _, wallets, _ = repos
        CreateWallet(wallets).execute(owner_id="alice", name="Cash", initial_balance=1)
        CreateWallet(wallets).execute(owner_id="bob_1", name="Cash", initial_balance=2)
        assert _wallet(wallets, owner="bob_1").balance == 2.0

    def test_remove(self, repos):
        _, wallets, _ = repos
        CreateWallet(wallets).execute(owner_id="alice", name="Cash", initial_balance=1)
        RemoveWallet(wallets).execute(owner_id="alice", name="Cash")
        assert GetWallets(wallets).execute("alice") == []
        with pytest.raises(NotFoundError):
            RemoveWallet(wallets).execute(owner_id="alice", name="Cash")

    def test_rename(self, repos):
        _, wallets, categories = repos
        CreateWallet(wallets).execute(owner_id="alice", name="Cash", initial_balance=10)
        CreateWallet(wallets).execute(owner_id="alice", name="Card", initial_balance=0)
        _add(wallets, categories, 3)
        renamed = RenameWallet(wallets).execute(owner_id="alice", current_name="Cash", new_name="Pocket")
        assert renamed.balance == 7.0
        assert len(renamed.transactions) == 1
        with pytest.raises(ConflictError):
            RenameWallet(wallets).execute(owner_id="alice", current_name="Pocket", new_name="Card")
        with pytest.raises(NotFoundError):
            RenameWallet(wallets).execute(owner_id="alice", current_name="Cash", new_name="X")

    def test_set_balance(self, repos):
        _, wallets, categories = repos
        CreateWallet(wallets).execute(owner_id="alice", name="Cash", initial_balance=10)
        _add(wallets, categories, 4)
        updated = SetWalletBalance(wallets).execute(owner_id="alice", name="Cash", new_balance="50")
        assert updated.balance == 50.0
        assert updated.initial_balance == 54.0
        with pytest.raises(ValidationError):
            SetWalletBalance(wallets).execute(owner_id="alice", name="Cash", new_balance="-1")


class TestTransactions:
    @pytest.fixture(autouse=True)
    def _cash(self, repos):
        _, wallets, categories = repos
        CreateWallet(wallets).execute(owner_id="alice", name="Cash", initial_balance=100)
        AddCategory(categories).execute(owner_id="alice", name="Food", budget_limit=50)

    def test_add_expense_and_income(self, repos):
        _, wallets, categories = repos
        expense = _add(wallets, categories, "20", "food", date="2025-01-05")
        income = _add(wallets, categories, 15, "Salary", is_income=True)
        assert expense.amount == -20.0
        assert expense.category == "Food"
        assert income.amount == 15.0
        assert income.category == "Salary"
        assert _wallet(wallets).balance == 95.0

    @pytest.mark.parametrize("amount", ["0", "-5", "100000000.01", "x"])
    def test_add_rejects_bad_amount(self, repos, amount):
        _, wallets, categories = repos
        with pytest.raises(ValidationError):
            _add(wallets, categories, amount)
        assert _wallet(wallets).transactions == ()

    def test_add_to_missing_wallet(self, repos):
        _, wallets, categories = repos
        with pytest.raises(NotFoundError):
            _add(wallets, categories, 5, wallet="Card")

    def test_add_rejects_bad_date(self, repos):
        _, wallets, categories = repos
        with pytest.raises(ValidationError):
            _add(wallets, categories, 5, date="2025-02-30")

    def test_edit_correction(self, repos):
        _, wallets, categories = repos
        transaction = _add(wallets, categories, 80)
        assert _wallet(wallets).balance == 20.0
        edited = EditTransaction(wallets, categories).execute(
            owner_id="alice",
            wallet_name="Cash",
            transaction_id=transaction.id,
            new_amount="-50",
            new_category="Food",
            new_date="2025-02-01",
        )
        assert edited.id == transaction.id
        assert _wallet(wallets).balance == 50.0

    def test_edit_can_flip_sign(self, repos):
        _, wallets, categories = repos
        transaction = _add(wallets, categories, 10)
        EditTransaction(wallets, categories).execute(
            owner_id="alice",
            wallet_name="Cash",
            transaction_id=transaction.id,
            new_amount=10,
            new_category="Refund",
            new_date="2025-02-01",
        )
        assert _wallet(wallets).balance == 110.0

    def test_edit_rejects_zero_and_unknown_id(self, repos):
        _, wallets, categories = repos
        transaction = _add(wallets, categories, 10)
        edit = EditTransaction(wallets, categories)
        with pytest.raises(ValidationError):
            edit.execute(
                owner_id="alice",
                wallet_name="Cash",
                transaction_id=transaction.id,
                new_amount=0,
                new_category="Food",
                new_date="2025-02-01",
            )
        with pytest.raises(NotFoundError):
            edit.execute(
                owner_id="alice",
                wallet_name="Cash",
                transaction_id="missing",
                new_amount=-1,
                new_category="Food",
                new_date="2025-02-01",
            )
        assert _wallet(wallets).balance == 90.0

    def test_delete(self, repos):
        _, wallets, categories = repos
        transaction = _add(wallets, categories, 30)
        removed = DeleteTransaction(wallets).execute(
            owner_id="alice", wallet_name="Cash", transaction_id=transaction.id
        )
        assert removed == transaction
        assert _wallet(wallets).balance == 100.0
        assert ListTransactions(wallets).execute(owner_id="alice", wallet_name="Cash") == []

    def test_balance_invariant_under_random_operations(self, repos):
        _, wallets, categories = repos
        rng = random.Random(20240501)
        for _ in range(60):
            current = _wallet(wallets)
            operation = rng.choice(["add", "add", "edit", "delete"])
            if operation == "add" or not current.transactions:
                _add(
                    wallets,
                    categories,
                    round(rng.uniform(0.01, 500), 2),
                    rng.choice(["Food", "Fun", "Rent"]),
                    is_income=rng.random() < 0.5,
                )
            elif operation == "edit":
                target = rng.choice(current.transactions)
                EditTransaction(wallets, categories).execute(
                    owner_id="alice",
                    wallet_name="Cash",
                    transaction_id=target.id,
                    new_amount=rng.choice([-1, 1]) * round(rng.uniform(0.01, 500), 2),
                    new_category="Food",
                    new_date="2025-03-01",
                )
            else:
                target = rng.choice(current.transactions)
                DeleteTransaction(wallets).execute(
                    owner_id="alice", wallet_name="Cash", transaction_id=target.id
                )
            wallet = _wallet(wallets)
            expected = 100.0 + sum(t.amount for t in wallet.transactions)
            assert wallet.balance == pytest.approx(expected, abs=0.005)


class TestTransfers:
    @pytest.fixture(autouse=True)
    def _wallets(self, repos):
        _, wallets, _ = repos
        CreateWallet(wallets).execute(owner_id="alice", name="Cash", initial_balance=100)
        CreateWallet(wallets).execute(owner_id="alice", name="Card", initial_balance=0)
        CreateWallet(wallets).execute(owner_id="bob_1", name="Main", initial_balance=5)

    def _transfer(self, repos, amount, receiver="bob_1", receiver_wallet="Main"):
        users, wallets, _ = repos
        return TransferFunds(wallets, users).execute(
            sender_id="alice",
            sender_wallet="Cash",
            receiver_id=receiver,
            receiver_wallet=receiver_wallet,
            amount=amount,
        )

    def test_cross_owner_transfer(self, repos):
        _, wallets, _ = repos
        transfer_id = self._transfer(repos, "40")
        cash = _wallet(wallets)
        main = _wallet(wallets, "Main", "bob_1")
        assert cash.balance == 60.0
        assert main.balance == 45.0
        (debit,) = cash.transactions
        (credit,) = main.transactions
        assert debit.amount == -40.0
        assert credit.amount == 40.0
        assert debit.transfer_id == credit.transfer_id == transfer_id
        assert debit.category == credit.category == TRANSFER_CATEGORY

    def test_same_owner_transfer_writes_both_legs(self, repos):
        _, wallets, _ = repos
        self._transfer(repos, 100, receiver="alice", receiver_wallet="Card")
        assert _wallet(wallets).balance == 0.0
        assert _wallet(wallets, "Card").balance == 100.0

    def test_insufficient_funds_changes_nothing(self, repos, tmp_path):
        before = _snapshot(tmp_path)
        with pytest.raises(InsufficientFundsError):
            self._transfer(repos, "100.01")
        assert _snapshot(tmp_path) == before

    def test_rejects_missing_receiver_and_same_wallet(self, repos):
        with pytest.raises(NotFoundError):
            self._transfer(repos, 1, receiver="nobody")
        with pytest.raises(NotFoundError):
            self._transfer(repos, 1, receiver_wallet="Missing")
        with pytest.raises(ValidationError):
            self._transfer(repos, 1, receiver="alice", receiver_wallet="Cash")

    def test_transfer_legs_cannot_be_edited_or_deleted(self, repos):
        _, wallets, categories = repos
        self._transfer(repos, 10)
        leg = _wallet(wallets).transactions[0]
        with pytest.raises(ValidationError, match="Transfer-linked"):
            DeleteTransaction(wallets).execute(
                owner_id="alice", wallet_name="Cash", transaction_id=leg.id
            )
        with pytest.raises(ValidationError, match="Transfer-linked"):
            EditTransaction(wallets, categories).execute(
                owner_id="alice",
                wallet_name="Cash",
                transaction_id=leg.id,
                new_amount=-1,
                new_category="Food",
                new_date="2025-01-01",
            )

    def test_receiver_write_failure_restores_sender(self, repos):
        users, real_wallets, _ = repos
        wallets = Mock(spec=WalletRepository)
        wallets.load_by_owner.side_effect = real_wallets.load_by_owner

        def save(owner_id, items):
            if owner_id == "bob_1":
                raise PersistenceError("receiver file is read-only")
            real_wallets.save_by_owner(owner_id, items)

        wallets.save_by_owner.side_effect = save
        with pytest.raises(PersistenceError):
            TransferFunds(wallets, users).execute(
                sender_id="alice",
                sender_wallet="Cash",
                receiver_id="bob_1",
                receiver_wallet="Main",
                amount=10,
            )
        assert _wallet(real_wallets).balance == 100.0
        assert _wallet(real_wallets).transactions == ()
        assert wallets.save_by_owner.call_count == 3


class TestCategories:
    def test_add_and_list(self, repos):
        _, _, categories = repos
        AddCategory(categories).execute(owner_id="alice", name="Food", budget_limit="100")
        AddCategory(categories).execute(owner_id="alice", name="Fun")
        listed = GetCategories(categories).execute("alice")
        assert [(c.name, c.budget_limit) for c in listed] == [("Food", 100.0), ("Fun", 0.0)]
        assert GetCategories(categories).execute("bob_1") == []

    def test_duplicate_is_case_insensitive_and_leaves_store_unchanged(self, repos, tmp_path):
        _, _, categories = repos
        AddCategory(categories).execute(owner_id="alice", name="Food")
        before = _snapshot(tmp_path)
        with pytest.raises(ConflictError):
            AddCategory(categories).execute(owner_id="alice", name="FOOD")
        assert _snapshot(tmp_path) == before

    def test_update_limit(self, repos):
        _, _, categories = repos
        AddCategory(categories).execute(owner_id="alice", name="Food")
        updated = UpdateBudgetLimit(categories).execute(owner_id="alice", name="food", budget_limit="75.5")
        assert updated.name == "Food"
        assert categories.find_by_name("alice", "Food").budget_limit == 75.5
        with pytest.raises(ValidationError):
            UpdateBudgetLimit(categories).execute(owner_id="alice", name="Food", budget_limit="-1")
        with pytest.raises(NotFoundError):
            UpdateBudgetLimit(categories).execute(owner_id="alice", name="Rent", budget_limit="1")

    def test_rename_updates_transactions(self, repos):
        _, wallets, categories = repos
        CreateWallet(wallets).execute(owner_id="alice", name="Cash", initial_balance=100)
        AddCategory(categories).execute(owner_id="alice", name="Food", budget_limit=50)
        AddCategory(categories).execute(owner_id="alice", name="Fun")
        _add(wallets, categories, 10, "Food")
        RenameCategory(categories, wallets).execute(
            owner_id="alice", current_name="food", new_name="Groceries"
        )
        assert [c.name for c in GetCategories(categories).execute("alice")] == ["Groceries", "Fun"]
        assert _wallet(wallets).transactions[0].category == "Groceries"
        with pytest.raises(ConflictError):
            RenameCategory(categories, wallets).execute(
                owner_id="alice", current_name="Groceries", new_name="fun"
            )

    def test_rename_case_only_is_allowed(self, repos):
        _, wallets, categories = repos
        AddCategory(categories).execute(owner_id="alice", name="food")
        renamed = RenameCategory(categories, wallets).execute(
            owner_id="alice", current_name="food", new_name="Food"
        )
        assert renamed.name == "Food"

    def test_rename_restores_categories_when_wallet_write_fails(self, repos):
        _, _, categories = repos
        AddCategory(categories).execute(owner_id="alice", name="Food")
        wallets = Mock(spec=WalletRepository)
        wallets.load_by_owner.return_value = []
        wallets.save_by_owner.side_effect = PersistenceError("boom")
        with pytest.raises(PersistenceError):
            RenameCategory(categories, wallets).execute(
                owner_id="alice", current_name="Food", new_name="Groceries"
            )
        assert [c.name for c in GetCategories(categories).execute("alice")] == ["Food"]

    def test_remove_keeps_transactions(self, repos):
        _, wallets, categories = repos
        CreateWallet(wallets).execute(owner_id="alice", name="Cash", initial_balance=100)
        AddCategory(categories).execute(owner_id="alice", name="Food")
        _add(wallets, categories, 10, "Food")
        RemoveCategory(categories).execute(owner_id="alice", name="FOOD")
        assert GetCategories(categories).execute("alice") == []
        assert _wallet(wallets).transactions[0].category == "Food"
        with pytest.raises(NotFoundError):
            RemoveCategory(categories).execute(owner_id="alice", name="Food")

    def test_rename_leaves_transfer_legs_alone(self, repos):
        users, wallets, categories = repos
        CreateWallet(wallets).execute(owner_id="alice", name="Cash", initial_balance=100)
        CreateWallet(wallets).execute(owner_id="alice", name="Card", initial_balance=0)
        TransferFunds(wallets, users).execute(
            sender_id="alice",
            sender_wallet="Cash",
            receiver_id="alice",
            receiver_wallet="Card",
            amount=10,
        )
        AddCategory(categories).execute(owner_id="alice", name="transfer")
        _add(wallets, categories, 5, "Transfer")

        RenameCategory(categories, wallets).execute(
            owner_id="alice", current_name="transfer", new_name="Gifts"
        )

        legs = [
            t for w in GetWallets(wallets).execute("alice") for t in w.transactions if t.is_transfer
        ]
        assert [t.category for t in legs] == [TRANSFER_CATEGORY, TRANSFER_CATEGORY]
        (expense,) = [t for t in _wallet(wallets).transactions if not t.is_transfer]
        assert expense.category == "Gifts"

    def test_unknown_category_is_tolerated(self, repos):
        _, wallets, categories = repos
        CreateWallet(wallets).execute(owner_id="alice", name="Cash", initial_balance=100)
        transaction = _add(wallets, categories, 10, "Misc")
        assert transaction.category == "Misc"


class TestCalculations:
    def test_totals_budget_and_finances(self, repos):
        users, wallets, categories = repos
        CreateWallet(wallets).execute(owner_id="alice", name="Cash", initial_balance=500)
        CreateWallet(wallets).execute(owner_id="alice", name="Card", initial_balance=0)
        AddCategory(categories).execute(owner_id="alice", name="Food", budget_limit=100)
        _add(wallets, categories, 60, "Food")
        _add(wallets, categories, 50, "food")
        _add(wallets, categories, 200, "Salary", is_income=True)
        TransferFunds(wallets, users).execute(
            sender_id="alice",
            sender_wallet="Cash",
            receiver_id="alice",
            receiver_wallet="Card",
            amount=25,
        )

        totals = CalculateByCategories(wallets).execute("alice")
        assert totals == {"Food": -110.0, "Salary": 200.0}
        (food,) = CalculateBudgetState(wallets, categories).execute("alice")
        assert food.spent == 110.0
        assert food.remaining == -10.0
        assert food.is_over_budget
        summary = CalculateFinances(wallets).execute("alice")
        assert summary.total_income == 200.0
        assert summary.total_expenses == 110.0
        assert not summary.expense_exceeds_income


def test_category_limit_snapshot_is_written_with_transactions(repos, tmp_path):
    _, wallets, categories = repos
    CreateWallet(wallets).execute(owner_id="alice", name="Cash", initial_balance=100)
    AddCategory(categories).execute(owner_id="alice", name="Food", budget_limit=100)
    _add(wallets, categories, 5, "Food")
    data = json.loads((tmp_path / "wallets" / "wallets_alice.json").read_text(encoding="utf-8"))
    assert data[0]["transactions"][0]["category"] == {"name": "Food", "budgetLimit": 100.0}

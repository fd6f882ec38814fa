from dataclasses import FrozenInstanceError
from datetime import date

import pytest

from domain.categories import Category
from domain.errors import NotFoundError, ValidationError
from domain.transactions import TRANSFER_CATEGORY, Transaction
from domain.users import User
from domain.wallets import Wallet


class TestTransaction:
    def test_transaction_is_immutable(self):
        transaction = Transaction(amount=-20.0, category="Food", date="2025-01-01")
        with pytest.raises(FrozenInstanceError):
            transaction.amount = 1.0  # type: ignore

    def test_defaults_and_normalisation(self):
        transaction = Transaction(amount="-19.999", category="  Food ", date="2025-03-01")
        assert transaction.amount == -20.0
        assert transaction.category == "Food"
        assert transaction.date == date(2025, 3, 1)
        assert len(transaction.id) == 32
        assert transaction.type == "expense"
        assert not transaction.is_transfer

    def test_ids_are_unique(self):
        assert Transaction(amount=1, category="A").id != Transaction(amount=1, category="A").id

    def test_invalid_values(self):
        with pytest.raises(ValidationError):
            Transaction(amount="abc", category="Food")
        with pytest.raises(ValidationError):
            Transaction(amount=1, category="Food", date="01.01.2025")
        with pytest.raises(ValidationError):
            Transaction(amount=1, category="Food", id=" ")

    def test_edited_keeps_id(self):
        original = Transaction(amount=-80, category="Food", date="2025-01-01")
        edited = original.edited(amount=-50, category="Fun", date="2025-01-02")
        assert edited.id == original.id
        assert edited.amount == -50.0
        assert edited.date == date(2025, 1, 2)
        assert original.amount == -80.0

    def test_transfer_leg(self):
        leg = Transaction(amount=10, category=TRANSFER_CATEGORY, transfer_id="t1")
        assert leg.is_transfer
        assert leg.is_income


class TestWallet:
    def test_with_transaction_moves_balance(self):
        wallet = Wallet(owner_id="alice", name="Cash", balance=100)
        updated = wallet.with_transaction(Transaction(amount=-20, category="Food"))
        assert updated.balance == 80.0
        assert len(updated.transactions) == 1
        assert wallet.balance == 100.0
        assert wallet.transactions == ()

    def test_without_transaction_restores_balance(self):
        transaction = Transaction(amount=-20, category="Food")
        wallet = Wallet(owner_id="alice", name="Cash", balance=100).with_transaction(transaction)
        restored = wallet.without_transaction(transaction.id)
        assert restored.balance == 100.0
        assert restored.transactions == ()

    def test_replaced_transaction_applies_difference(self):
        transaction = Transaction(amount=-80, category="Food")
        wallet = Wallet(owner_id="alice", name="Cash", balance=100).with_transaction(transaction)
        assert wallet.balance == 20.0
        updated = wallet.with_replaced_transaction(
            transaction.edited(amount=-50, category="Food", date=transaction.date)
        )
        assert updated.balance == 50.0

    def test_find_missing_transaction(self):
        with pytest.raises(NotFoundError):
            Wallet(owner_id="alice", name="Cash").find_transaction("nope")

    def test_initial_balance_is_derived(self):
        wallet = (
            Wallet(owner_id="alice", name="Cash", balance=100)
            .with_transaction(Transaction(amount=-30, category="Food"))
            .with_transaction(Transaction(amount=5, category="Gift"))
        )
        assert wallet.balance == 75.0
        assert wallet.initial_balance == 100.0

    def test_with_balance_rebases_initial_balance(self):
        wallet = Wallet(owner_id="alice", name="Cash", balance=100).with_transaction(
            Transaction(amount=-30, category="Food")
        )
        rebased = wallet.with_balance(200)
        assert rebased.balance == 200.0
        assert rebased.initial_balance == 230.0

    def test_category_rename_is_case_insensitive(self):
        wallet = (
            Wallet(owner_id="alice", name="Cash", balance=100)
            .with_transaction(Transaction(amount=-1, category="food"))
            .with_transaction(Transaction(amount=-1, category="Fun"))
        )
        renamed = wallet.with_category_renamed("Food", "Groceries")
        assert [t.category for t in renamed.transactions] == ["Groceries", "Fun"]
        assert renamed.balance == wallet.balance


class TestCategoryAndUser:
    def test_category_matching(self):
        category = Category(owner_id="alice", name="Food", budget_limit=100)
        assert category.matches(" food ")
        assert not category.matches("Fun")
        assert category.has_limit
        assert not Category(owner_id="alice", name="Fun").has_limit

    def test_negative_limit_rejected(self):
        with pytest.raises(ValidationError):
            Category(owner_id="alice", name="Food", budget_limit=-1)

    def test_user_password(self):
        user = User(username="alice", password="secret1")
        assert user.check_password("secret1")
        assert not user.check_password("Secret1")
        assert user.with_password("newpass").check_password("newpass")
        assert user.renamed("alice2").password == "secret1"

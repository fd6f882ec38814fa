import logging
from dataclasses import dataclass

from domain.errors import (
    BadCredentialError,
    ConflictError,
    NotFoundError,
    PersistenceError,
)
from domain.users import User
from domain.validation import require_login, require_password
from infrastructure.repositories import (
    CategoryRepository,
    UserRepository,
    WalletRepository,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    """The authenticated identity of one interactive session."""

    username: str


class AccountService:
    """Registration, authentication and credential changes.

    Holds no session state of its own: callers keep the ``Session`` returned
    by ``authenticate`` and pass it back in.
    """

    def __init__(
        self,
        users: UserRepository,
        wallets: WalletRepository,
        categories: CategoryRepository,
    ) -> None:
        self._users = users
        self._wallets = wallets
        self._categories = categories

    def register(self, username: str, password: str) -> User:
        username = require_login(username)
        password = require_password(password)
        users = self._users.load_all()
        if any(user.username == username for user in users):
            raise ConflictError(f"User '{username}' already exists")
        user = User(username=username, password=password)
        self._users.save_all(users + [user])
        logger.info("User registered username=%s", username)
        return user

    def authenticate(self, username: str, password: str) -> Session:
        username = require_login(username)
        require_password(password)
        user = self._users.find_by_username(username)
        if user is None:
            raise NotFoundError(f"User '{username}' not found")
        if not user.check_password(password):
            logger.info("Authentication failed username=%s", username)
            raise BadCredentialError("Wrong password")
        logger.info("User authenticated username=%s", username)
        return Session(username=user.username)

    def current_user(self, session: Session) -> User:
        user = self._users.find_by_username(session.username)
        if user is None:
            raise NotFoundError(f"User '{session.username}' not found")
        return user

    def change_password(self, session: Session, old_password: str, new_password: str) -> Session:
        users = self._users.load_all()
        current = next((u for u in users if u.username == session.username), None)
        if current is None:
            raise NotFoundError(f"User '{session.username}' not found")
        if not current.check_password(old_password):
            raise BadCredentialError("Wrong old password")
        new_password = require_password(new_password)
        self._users.save_all(
            [u.with_password(new_password) if u.username == current.username else u for u in users]
        )
        logger.info("Password changed username=%s", session.username)
        return session

    def change_username(self, session: Session, new_username: str) -> Session:
        """Rename the session user and move every owned wallet and category.

        Three files are rewritten one after another. If a later write fails,
        the earlier ones are restored from the snapshots taken before the
        first write and PersistenceError is raised.
        """
        new_username = require_login(new_username)
        old_username = session.username
        users = self._users.load_all()
        if not any(u.username == old_username for u in users):
            raise NotFoundError(f"User '{old_username}' not found")
        if new_username == old_username:
            return session
        if any(u.username == new_username for u in users):
            raise ConflictError(f"User '{new_username}' already exists")

        old_wallets = self._wallets.load_by_owner(old_username)
        old_categories = self._categories.load_by_owner(old_username)

        self._users.save_all(
            [u.renamed(new_username) if u.username == old_username else u for u in users]
        )
        try:
            self._categories.save_for_owner(old_username, [])
            self._categories.save_for_owner(
                new_username, [c.with_owner(new_username) for c in old_categories]
            )
            # Delete before save: on a case-insensitive filesystem old and new
            # names map to one file.
            self._wallets.delete_owner(old_username)
            self._wallets.save_by_owner(
                new_username, [w.with_owner(new_username) for w in old_wallets]
            )
        except PersistenceError:
            logger.exception(
                "Username change failed old=%s new=%s, restoring previous state",
                old_username,
                new_username,
            )
            self._restore_after_rename(users, old_username, new_username, old_wallets, old_categories)
            raise
        logger.info(
            "Username changed old=%s new=%s wallets=%s categories=%s",
            old_username,
            new_username,
            len(old_wallets),
            len(old_categories),
        )
        return Session(username=new_username)

    def _restore_after_rename(
        self,
        users: list[User],
        old_username: str,
        new_username: str,
        old_wallets: list,
        old_categories: list,
    ) -> None:
        steps = (
            lambda: self._users.save_all(users),
            lambda: self._categories.save_for_owner(new_username, []),
            lambda: self._categories.save_for_owner(old_username, old_categories),
            lambda: self._wallets.delete_owner(new_username),
            lambda: self._wallets.save_by_owner(old_username, old_wallets),
        )
        for step in steps:
            try:
                step()
            except PersistenceError:
                logger.exception("Restore step failed during username change rollback")

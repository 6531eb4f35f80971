from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, Optional

from worklog.reference import User


logger = logging.getLogger(__name__)


class NotLoggedIn(RuntimeError):
    pass


class RememberedUser:
    """Remember-me preference: the last picked user id, stored as JSON."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Optional[str]:
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable remember file %s: %s", self.path, exc)
            return None
        user_id = data.get("userId") if isinstance(data, dict) else None
        return str(user_id) if user_id else None

    def save(self, user_id: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({"userId": user_id}), encoding="utf-8")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)

    def recall(self, users: Iterable[User]) -> Optional[User]:
        user_id = self.load()
        if user_id is None:
            return None
        return next((u for u in users if u.id == user_id), None)


class Session:
    """Current-user holder: set at login, cleared at logout."""

    def __init__(self, remembered: Optional[RememberedUser] = None):
        self.remembered = remembered
        self._user: Optional[User] = None

    @property
    def user(self) -> Optional[User]:
        return self._user

    @property
    def is_admin(self) -> bool:
        return bool(self._user and self._user.is_admin)

    def login(self, user: User, *, remember: bool = False) -> User:
        self._user = user
        if self.remembered is not None:
            if remember:
                self.remembered.save(user.id)
            else:
                self.remembered.clear()
        logger.info("Logged in as %s", user.name)
        return user

    def logout(self) -> None:
        self._user = None

    def require_user(self) -> User:
        if self._user is None:
            raise NotLoggedIn("No user selected")
        return self._user

from enum import Enum


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]

    def satisfies(self, required: "UserRole") -> bool:
        """True when this role carries at least the capabilities of ``required``."""
        return self.rank >= required.rank

    @classmethod
    def parse(cls, value: "str | UserRole | None") -> "UserRole":
        if isinstance(value, UserRole):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.USER


_ROLE_RANK = {
    UserRole.USER: 0,
    UserRole.ADMIN: 1,
    UserRole.SUPER_ADMIN: 2,
}

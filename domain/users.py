from dataclasses import dataclass, replace


@dataclass(frozen=True)
class User:
    username: str
    # Plaintext, compared exactly.
    password: str

    def check_password(self, password: str) -> bool:
        return self.password == password

    def with_password(self, password: str) -> "User":
        return replace(self, password=password)

    def renamed(self, username: str) -> "User":
        return replace(self, username=username)

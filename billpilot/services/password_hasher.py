"""One-way password hashing."""

import bcrypt


class PasswordHasher:
    """bcrypt hashing with a fixed work factor."""

    def __init__(self, rounds: int = 10):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def compare(self, password: str, password_hash: str) -> bool:
        if not password or not password_hash:
            return False
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            # malformed stored hash or password over bcrypt's 72 byte limit
            return False

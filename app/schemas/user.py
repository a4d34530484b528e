"""User ODM schema."""

from beanie import Document, Indexed


class User(Document):
    """User document model."""

    user_id: Indexed(int, unique=True)  # type: ignore[valid-type]
    username: Indexed(str, unique=True)  # type: ignore[valid-type]
    password: str

    class Settings:
        name = "user"


class Counter(Document):
    """Monotonic counters used to allocate integer surrogate ids."""

    name: Indexed(str, unique=True)  # type: ignore[valid-type]
    value: int = 0

    class Settings:
        name = "counter"

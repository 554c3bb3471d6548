import enum


class RoomScope(str, enum.Enum):
    ACTIVE = "active"
    ALL = "all"

    @classmethod
    def parse(cls, value) -> "RoomScope":
        """Unknown or missing values fall back to the active scope."""
        try:
            return cls(value)
        except ValueError:
            return cls.ACTIVE

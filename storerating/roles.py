import enum


class Role(str, enum.Enum):
    SYSTEM_ADMIN = "SYSTEM_ADMIN"
    NORMAL_USER = "NORMAL_USER"
    STORE_OWNER = "STORE_OWNER"

    @classmethod
    def parse(cls, value) -> "Role | None":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


def display_name(role: Role) -> str:
    match role:
        case Role.SYSTEM_ADMIN:
            return "System Administrator"
        case Role.NORMAL_USER:
            return "Normal User"
        case Role.STORE_OWNER:
            return "Store Owner"
    raise ValueError(f"unknown role: {role!r}")


def default_redirect_path(role: Role) -> str:
    """Landing page for a freshly authenticated principal."""
    match role:
        case Role.SYSTEM_ADMIN:
            return "/admin/dashboard"
        case Role.NORMAL_USER:
            return "/stores"
        case Role.STORE_OWNER:
            return "/owner/dashboard"
    raise ValueError(f"unknown role: {role!r}")

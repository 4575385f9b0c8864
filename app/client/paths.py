"""Route paths the session client reasons about."""

HOME_PATH = "/"
LOGIN_PATH = "/auth/login"
AUTH_PREFIX = "/auth"
ADMIN_PREFIX = "/admin"


def _under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def is_auth_path(path: str) -> bool:
    return _under(path, AUTH_PREFIX)


def is_admin_path(path: str) -> bool:
    return _under(path, ADMIN_PREFIX)

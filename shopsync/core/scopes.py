import re
from typing import Iterable, List, Sequence, Union

SCOPE_PATTERN = re.compile(r"^(read|write)_[a-z][a-z_]*$")

READ_PREFIX = "read_"
WRITE_PREFIX = "write_"


def parse_scopes(value: Union[str, Iterable[str], None]) -> List[str]:
    """
    Normalise a comma-separated string (as Shopify returns it) or a list
    into an ordered, de-duplicated list of scope names.
    """
    if value is None:
        return []
    items = value.split(",") if isinstance(value, str) else value
    scopes: List[str] = []
    for item in items:
        scope = item.strip()
        if scope and scope not in scopes:
            scopes.append(scope)
    return scopes


def format_scopes(scopes: Iterable[str]) -> str:
    return ",".join(parse_scopes(list(scopes)))


def is_valid_scope(scope: str) -> bool:
    return bool(SCOPE_PATTERN.match(scope))


def read_scope(resource: str) -> str:
    return f"{READ_PREFIX}{resource}"


def write_scope(resource: str) -> str:
    return f"{WRITE_PREFIX}{resource}"


def scope_satisfies(scopes: Sequence[str], required: str) -> bool:
    """
    True if ``scopes`` grants ``required``.

    A write_X scope also satisfies a read_X requirement; a read_X scope never
    satisfies write_X.
    """
    if required in scopes:
        return True
    if required.startswith(READ_PREFIX):
        return WRITE_PREFIX + required[len(READ_PREFIX):] in scopes
    return False


def effective_scopes(credential_scopes: Sequence[str], granted_scopes: Sequence[str]) -> List[str]:
    """Credential scopes still covered by the tenant's current grant."""
    return [scope for scope in credential_scopes if scope_satisfies(granted_scopes, scope)]


def uncovered_scopes(requested: Sequence[str], granted_scopes: Sequence[str]) -> List[str]:
    return [scope for scope in requested if not scope_satisfies(granted_scopes, scope)]

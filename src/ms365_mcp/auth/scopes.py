"""Graph permission scopes derived from the endpoint allow-list."""

from collections.abc import Iterable

# Write scope -> read scopes it implies
SCOPE_HIERARCHY: dict[str, list[str]] = {
    "Mail.ReadWrite": ["Mail.Read"],
    "Calendars.ReadWrite": ["Calendars.Read"],
    "Files.ReadWrite": ["Files.Read"],
    "Tasks.ReadWrite": ["Tasks.Read"],
    "Contacts.ReadWrite": ["Contacts.Read"],
}


def collapse_scopes(scopes: Iterable[str]) -> list[str]:
    """Drop read scopes already implied by a present write scope.

    Order of first appearance is preserved and duplicates are removed.

    Args:
        scopes: Scope strings, possibly with duplicates.

    Returns:
        Collapsed scope list. Collapsing a collapsed list is a no-op.
    """
    ordered = list(dict.fromkeys(scopes))
    present = set(ordered)

    implied: set[str] = set()
    for higher, lowers in SCOPE_HIERARCHY.items():
        if higher in present and all(scope in present for scope in lowers):
            implied.update(lowers)

    return [scope for scope in ordered if scope not in implied]


def build_scopes(endpoints: Iterable) -> list[str]:
    """Collect the scopes required by every endpoint descriptor.

    Args:
        endpoints: OperationDescriptor instances (anything with ``scopes``).

    Returns:
        Collapsed, ordered scope list.
    """
    collected: list[str] = []
    for endpoint in endpoints:
        collected.extend(endpoint.scopes)
    return collapse_scopes(collected)

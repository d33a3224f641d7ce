"""Shared request-parsing helpers for the API blueprints."""

import logging

logger = logging.getLogger(__name__)

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


def parse_bool(value, default=None):
    """Parse a query-string / form boolean.

    Returns ``default`` for missing or unrecognised input. Accepts
    1/0, true/false, yes/no, on/off (case-insensitive) and real booleans.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    return default


def form_entries(form, all_names_field="__allNames"):
    """Flatten a werkzeug MultiDict into ``{name: [values]}``.

    When the form carries ``__allNames`` (space-separated names of every
    rendered input), names listed there but absent from the submission are
    included with an empty list, so an unticked checkbox group clears its
    answer instead of being ignored.
    """
    entries = {name: form.getlist(name) for name in form.keys() if name != all_names_field}
    for name in (form.get(all_names_field) or "").split():
        entries.setdefault(name.strip(), [])
    return entries

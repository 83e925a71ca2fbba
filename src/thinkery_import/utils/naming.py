"""Container display names for OneNote."""

# OneNote rejects these characters in notebook, section group and section names
_REPLACEMENTS = (
    ("&", "and"),
    ("+", "plus"),
    ("#", "num"),
    ("%", "percent"),
    ("/", "-"),
)


def sanitize_name(name: str) -> str:
    """Replace characters OneNote forbids in container names.

    Only used for notebooks, section groups and sections; page titles and
    content keep their original text.
    """
    for char, replacement in _REPLACEMENTS:
        name = name.replace(char, replacement)
    return name

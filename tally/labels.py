"""Label codec — stores an arbitrary label string in a single text column.

Backslashes and double quotes are escaped with a leading backslash, so an
encoded label can be embedded in quoted contexts and decoded back exactly.
"""


def escape_label(label: str) -> str:
    """Escape every ``"`` and ``\\`` in *label*."""
    return label.replace("\\", "\\\\").replace('"', '\\"')


def unescape_label(encoded: str) -> str:
    """Invert :func:`escape_label`.

    A backslash makes the following character literal; a dangling trailing
    backslash is dropped.
    """
    out = []
    escaped = False
    for ch in encoded:
        if not escaped and ch == "\\":
            escaped = True
            continue
        out.append(ch)
        escaped = False
    return "".join(out)

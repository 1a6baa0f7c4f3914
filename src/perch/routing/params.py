"""URL placeholder converters.

Built-in converters for typed placeholders like ``{id:int}``. Any other
text after the colon is used as a raw regular expression.
"""


# regex pattern for each supported converter
CONVERTERS: dict[str, str] = {
    "str": r"[^/]*",
    "int": r"\d+",
    "float": r"\d+(?:\.\d+)?",
    "path": r".*",
}

DEFAULT_PATTERN = CONVERTERS["str"]


def placeholder_pattern(spec: str | None) -> str:
    """Return the regex for a placeholder's type spec.

    ``None`` -> default segment pattern, a converter name -> its pattern,
    anything else -> *spec* itself.
    """
    if spec is None:
        return DEFAULT_PATTERN
    return CONVERTERS.get(spec, spec)

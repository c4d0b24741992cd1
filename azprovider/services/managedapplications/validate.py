from azprovider.validation import all_of, string_length_between, string_matches

_NAME_MESSAGE = (
    "{key} may only contain alphanumeric characters, underscores, parentheses, "
    "hyphens, periods and commas, got {value!r}"
)

application_name = all_of(
    string_matches(r"^[-\w._,()]+$", _NAME_MESSAGE),
    string_length_between(3, 64),
)

application_definition_name = all_of(
    string_matches(r"^[-\w._,()]+$", _NAME_MESSAGE),
    string_length_between(3, 64),
)

application_definition_display_name = string_length_between(4, 60)

application_definition_description = string_length_between(0, 200)

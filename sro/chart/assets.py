import posixpath
import re
from enum import Enum

# Each state starts with a zero padded ordinal, e.g. 0000-driver-container.yaml
STATE_NAME_REGEX = re.compile(r"^[0-9]{4}[-_].*\.yaml$")


class TemplateKind(Enum):
    STATEFUL = "Stateful"
    NAMED = "Named"
    STATELESS = "Stateless"


def is_stateful_name(name: str) -> bool:
    base = posixpath.basename(name)
    return bool(base) and STATE_NAME_REGEX.match(base) is not None


def is_named_template(name: str) -> bool:
    """Named templates hold shared helpers, e.g. _helpers.tpl."""
    return posixpath.basename(name).endswith(".tpl")


def classify(name: str) -> TemplateKind:
    if is_stateful_name(name):
        return TemplateKind.STATEFUL
    if is_named_template(name):
        return TemplateKind.NAMED
    return TemplateKind.STATELESS


def state_ordinal(name: str) -> str:
    """The four digit ordinal prefix of a stateful template name."""
    return posixpath.basename(name)[:4]

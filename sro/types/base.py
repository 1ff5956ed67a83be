from types import SimpleNamespace
from typing import Any, Dict
from marshmallow import EXCLUDE, Schema, post_load

JSON = Dict[str, Any]
MAX_REPR_LEN = 80


class BaseModel(SimpleNamespace):
    """Attribute bag built from a loaded spec.

    Fields annotated on the model but missing from `kwargs` are set to None,
    so optional spec fields can always be read as attributes.
    """

    def __init__(self, **kwargs: Any) -> None:
        for field in getattr(type(self), "__annotations__", {}):
            kwargs.setdefault(field, None)
        super().__init__(**kwargs)

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in self.__dict__.items())
        repr_ = f"{type(self).__name__}({fields})"
        if len(repr_) > MAX_REPR_LEN:
            return repr_[:MAX_REPR_LEN] + " ...)"
        return repr_


class BaseSchema(Schema):
    """Loads a custom resource spec mapping into `__model__`."""

    __model__: Any = BaseModel

    class Meta:
        # Fields served by newer CRD versions are ignored
        unknown = EXCLUDE

    @post_load
    def make_object(self, data: JSON, **kwargs: Any) -> Any:
        return self.__model__(**data)

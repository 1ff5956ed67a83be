from marshmallow import fields
from sro.types.base import BaseSchema
from sro.types.models import HelmRepository, HelmChartReference


class HelmRepositorySchema(BaseSchema):
    __model__ = HelmRepository

    name = fields.Str(data_key="name", allow_none=False, required=True)
    url = fields.Str(data_key="url", allow_none=True, load_default=None)
    insecure_skip_tls_verify = fields.Bool(
        data_key="insecure_skip_tls_verify", allow_none=True, load_default=False
    )


class HelmChartReferenceSchema(BaseSchema):
    __model__ = HelmChartReference

    name = fields.Str(data_key="name", allow_none=False, required=True)
    version = fields.Str(data_key="version", allow_none=True, load_default=None)
    repository = fields.Nested(
        HelmRepositorySchema(),
        data_key="repository",
        allow_none=True,
        load_default=None,
    )
    tags = fields.List(
        fields.Str(), data_key="tags", allow_none=True, load_default=list
    )

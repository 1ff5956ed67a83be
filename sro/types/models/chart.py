from typing import List, Optional
from sro.types.base import BaseModel


class HelmRepository(BaseModel):
    name: str
    url: Optional[str]
    insecure_skip_tls_verify: bool


class HelmChartReference(BaseModel):
    name: str
    version: Optional[str]
    repository: Optional[HelmRepository]
    tags: List[str]

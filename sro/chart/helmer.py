import logging
import os
import subprocess
import tempfile
from typing import Dict, List, Mapping, NamedTuple, Optional

import yaml

from sro.cluster.kernel import is_object_affine, set_affine_attributes
from sro.filter.set_label import set_label
from sro.resources.customresource import BaseCustomResource, SpecialResource
from sro.resources.kube import KubeClient
from sro.types.models import HelmChartReference
from sro.utils.errors import HelmerError
from sro.utils.helpers import keylist_dict

logger = logging.getLogger(__name__)

_POD_TEMPLATE_KINDS = ("DaemonSet", "Deployment", "StatefulSet")


class ChartTemplate(NamedTuple):
    name: str
    data: bytes


class Chart:
    """A loaded chart: metadata, default values and templates."""

    def __init__(
        self,
        name: str,
        version: Optional[str] = None,
        templates: List[ChartTemplate] = None,
        values: Dict = None,
        metadata: Dict = None,
    ) -> None:
        self.name = name
        self.version = version
        self.templates = list(templates or [])
        self.values = dict(values or {})
        self.metadata = dict(metadata or {})

    def with_templates(self, templates: List[ChartTemplate]) -> "Chart":
        """Copy of this chart carrying only `templates`."""
        return Chart(
            name=self.name,
            version=self.version,
            templates=templates,
            values=self.values,
            metadata=self.metadata,
        )

    def __repr__(self) -> str:
        return f"Chart<{self.name}-{self.version} templates={[t.name for t in self.templates]}>"


class Helmer:
    """Loads charts and applies rendered chart objects to the cluster."""

    def load(self, chart_ref: HelmChartReference) -> Chart:
        raise NotImplementedError()

    def apply(
        self,
        chart: Chart,
        values: Mapping,
        owner: Dict,
        name: str,
        namespace: str,
        node_selector: Mapping[str, str],
        kernel_version: str,
        os_major_minor: str,
        debug: bool,
    ) -> None:
        raise NotImplementedError()


def set_node_selector(obj: Dict, node_selector: Mapping[str, str]) -> None:
    if not node_selector:
        return
    if obj.get("kind") in _POD_TEMPLATE_KINDS:
        fields = ["spec", "template", "spec", "nodeSelector"]
    elif obj.get("kind") == "Pod":
        fields = ["spec", "nodeSelector"]
    else:
        return
    d = keylist_dict(obj)
    for key, value in node_selector.items():
        d[fields + [key]] = value


class HelmCliHelmer(Helmer):
    """Helmer backed by a local chart directory and the `helm template` command."""

    def __init__(
        self,
        charts_dir: str,
        kube: KubeClient,
        helm_binary: str = "helm",
        owner_resource: BaseCustomResource = SpecialResource,
    ) -> None:
        self.charts_dir = charts_dir
        self.kube = kube
        self.helm_binary = helm_binary
        self.owner_resource = owner_resource

    def chart_path(self, chart_ref: HelmChartReference) -> str:
        candidates = []
        if chart_ref.version:
            candidates.append(os.path.join(self.charts_dir, f"{chart_ref.name}-{chart_ref.version}"))
        candidates.append(os.path.join(self.charts_dir, chart_ref.name))
        for path in candidates:
            if os.path.isfile(os.path.join(path, "Chart.yaml")):
                return path
        raise HelmerError(
            f"Chart {chart_ref.name} {chart_ref.version or ''} not found in {self.charts_dir}"
        )

    def load(self, chart_ref: HelmChartReference) -> Chart:
        path = self.chart_path(chart_ref)
        with open(os.path.join(path, "Chart.yaml")) as f:
            metadata = yaml.safe_load(f) or {}

        values = {}
        values_file = os.path.join(path, "values.yaml")
        if os.path.isfile(values_file):
            with open(values_file) as f:
                values = yaml.safe_load(f) or {}

        templates = []
        templates_dir = os.path.join(path, "templates")
        if os.path.isdir(templates_dir):
            for file_name in sorted(os.listdir(templates_dir)):
                file_path = os.path.join(templates_dir, file_name)
                if not os.path.isfile(file_path):
                    continue
                with open(file_path, "rb") as f:
                    templates.append(ChartTemplate(f"templates/{file_name}", f.read()))

        logger.info(f"Loaded chart {metadata.get('name')} {metadata.get('version')} from {path}")
        return Chart(
            name=metadata.get("name", chart_ref.name),
            version=metadata.get("version", chart_ref.version),
            templates=templates,
            values=values,
            metadata=metadata,
        )

    def render(self, chart: Chart, values: Mapping, name: str, namespace: str) -> List[Dict]:
        """Render `chart` with `values` into a list of objects."""
        with tempfile.TemporaryDirectory(prefix="sro-chart-") as workdir:
            chart_dir = os.path.join(workdir, chart.name)
            os.makedirs(os.path.join(chart_dir, "templates"))
            metadata = {"apiVersion": "v2", **chart.metadata}
            metadata.setdefault("name", chart.name)
            metadata.setdefault("version", chart.version or "0.0.1")
            with open(os.path.join(chart_dir, "Chart.yaml"), "w") as f:
                yaml.safe_dump(metadata, f)
            for template in chart.templates:
                target = template.name
                if not target.startswith("templates/"):
                    target = f"templates/{os.path.basename(target)}"
                with open(os.path.join(chart_dir, target), "wb") as f:
                    f.write(template.data)
            values_file = os.path.join(workdir, "values.yaml")
            with open(values_file, "w") as f:
                yaml.safe_dump(dict(values), f)

            cmd = [
                self.helm_binary,
                "template",
                name,
                chart_dir,
                "--namespace",
                namespace,
                "--values",
                values_file,
            ]
            result = subprocess.run(cmd, capture_output=True, text=True, check=False)
            if result.returncode != 0:
                raise HelmerError(
                    f"helm template of {chart.name} failed: {result.stderr.strip()}"
                )
        return [
            doc
            for doc in yaml.safe_load_all(result.stdout)
            if isinstance(doc, dict) and doc.get("kind")
        ]

    def prepare_object(
        self,
        obj: Dict,
        owner: Dict,
        namespace: str,
        node_selector: Mapping[str, str],
        kernel_version: str,
        os_major_minor: str,
    ) -> Dict:
        set_label(obj)
        if is_object_affine(obj):
            set_affine_attributes(obj, kernel_version, os_major_minor)
        set_node_selector(obj, node_selector)
        obj["metadata"]["ownerReferences"] = [self.owner_resource.owner_reference(owner)]
        resource = self.kube.resource_for(obj["apiVersion"], obj["kind"])
        if resource.namespaced and not obj["metadata"].get("namespace"):
            obj["metadata"]["namespace"] = namespace
        return obj

    def apply(
        self,
        chart: Chart,
        values: Mapping,
        owner: Dict,
        name: str,
        namespace: str,
        node_selector: Mapping[str, str],
        kernel_version: str,
        os_major_minor: str,
        debug: bool,
    ) -> None:
        errors = []
        for obj in self.render(chart, values, name, namespace):
            kind, obj_name = obj.get("kind"), obj.get("metadata", {}).get("name")
            try:
                self.prepare_object(obj, owner, namespace, node_selector, kernel_version, os_major_minor)
                if debug:
                    logger.info(f"Debug active. Applying {kind}:\n{yaml.safe_dump(obj)}")
                operation = self.kube.create_or_update(obj)
                logger.info(f"{kind} {obj['metadata']['name']} {operation}")
            except Exception as e:
                logger.error(f"Failed to apply {kind} {obj_name}: {e}")
                errors.append(f"{kind}/{obj_name}: {e}")
        if errors:
            raise HelmerError("; ".join(errors))

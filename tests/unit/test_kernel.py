"""Unit tests for template classification, kernel affinity and ownership labels."""

import pytest
from sro.chart.assets import (
    TemplateKind,
    classify,
    is_named_template,
    is_stateful_name,
    state_ordinal,
)
from sro.cluster.kernel import (
    affine_suffix,
    is_object_affine,
    is_template_affine,
    set_affine_attributes,
)
from sro.common.models.labels import Labels, NodeFeatureLabels
from sro.filter.set_label import LabelsNotFoundError, set_label

KERNEL = "4.18.0-305.el8.x86_64"


def daemonset(name="driver", labels=True):
    obj = {
        "apiVersion": "apps/v1",
        "kind": "DaemonSet",
        "metadata": {"name": name, "namespace": "simple-kmod"},
        "spec": {
            "selector": {"matchLabels": {"app": name}},
            "template": {"metadata": {}, "spec": {"containers": []}},
        },
    }
    if labels:
        obj["spec"]["template"]["metadata"]["labels"] = {"app": name}
    return obj


class TestAssets:
    @pytest.mark.parametrize(
        "name",
        ["0000-buildconfig.yaml", "0001_driver.yaml", "templates/1000-driver-container.yaml"],
    )
    def test_stateful_names(self, name):
        assert is_stateful_name(name)
        assert classify(name) == TemplateKind.STATEFUL

    @pytest.mark.parametrize(
        "name", ["cfg.yaml", "001-short.yaml", "0001-driver.yml", "0001.yaml", ""]
    )
    def test_not_stateful(self, name):
        assert not is_stateful_name(name)

    def test_named_templates(self):
        assert is_named_template("templates/_helpers.tpl")
        assert classify("helpers.tpl") == TemplateKind.NAMED
        assert classify("cfg.yaml") == TemplateKind.STATELESS

    def test_state_ordinal(self):
        assert state_ordinal("templates/0002-b.yaml") == "0002"


class TestKernelAffinity:
    def test_template_with_annotation_key_is_affine(self):
        data = (
            b"metadata:\n"
            b"  annotations:\n"
            b"    specialresource.openshift.io/kernel-affine: \"true\"\n"
        )
        assert is_template_affine(data)

    def test_annotation_value_is_ignored(self):
        data = "metadata:\n  annotations:\n    specialresource.openshift.io/kernel-affine: \"false\"\n"
        assert is_template_affine(data)

    def test_unindented_key_is_not_affine(self):
        assert not is_template_affine("specialresource.openshift.io/kernel-affine: true\n")
        assert not is_template_affine(b"kind: ConfigMap\n")

    def test_object_affinity_needs_true_value(self):
        obj = {"metadata": {"annotations": {Labels.KERNEL_AFFINE_ANNOTATION: "true"}}}
        assert is_object_affine(obj)
        obj["metadata"]["annotations"][Labels.KERNEL_AFFINE_ANNOTATION] = "yes"
        assert not is_object_affine(obj)
        assert not is_object_affine({"metadata": {}})

    def test_affine_suffix_normalizes_underscores(self):
        assert affine_suffix("4.18.0_305", "8.4") == affine_suffix("4.18.0-305", "8.4")
        assert affine_suffix(KERNEL, "8.4") != affine_suffix(KERNEL, "8.5")

    def test_set_affine_attributes_on_workload(self):
        obj = daemonset()

        set_affine_attributes(obj, KERNEL, "8.4")

        name = f"driver-{affine_suffix(KERNEL, '8.4')}"
        assert obj["metadata"]["name"] == name
        assert obj["metadata"]["labels"]["app"] == name
        assert obj["spec"]["selector"]["matchLabels"]["app"] == name
        assert obj["spec"]["template"]["metadata"]["labels"]["app"] == name
        node_selector = obj["spec"]["template"]["spec"]["nodeSelector"]
        assert node_selector[NodeFeatureLabels.KERNEL_VERSION_FULL] == KERNEL

    def test_set_affine_attributes_on_pod(self):
        obj = {"kind": "Pod", "metadata": {"name": "build"}, "spec": {}}

        set_affine_attributes(obj, KERNEL, "8.4")

        assert obj["metadata"]["name"].startswith("build-")
        assert obj["spec"]["nodeSelector"] == {NodeFeatureLabels.KERNEL_VERSION_FULL: KERNEL}

    def test_set_affine_attributes_on_config_map_renames_only(self):
        obj = {"kind": "ConfigMap", "metadata": {"name": "cfg"}, "data": {}}

        set_affine_attributes(obj, KERNEL, "8.4")

        assert obj["metadata"]["name"] != "cfg"
        assert "spec" not in obj


class TestSetLabel:
    def test_labels_object_and_pod_template(self):
        obj = daemonset()

        set_label(obj)

        assert obj["metadata"]["labels"][Labels.OWNED_LABEL] == "true"
        assert obj["spec"]["template"]["metadata"]["labels"][Labels.OWNED_LABEL] == "true"

    def test_non_workload_only_gets_metadata_label(self):
        obj = {"kind": "ConfigMap", "metadata": {"name": "cfg", "labels": None}}

        set_label(obj)

        assert obj["metadata"]["labels"] == {Labels.OWNED_LABEL: "true"}

    def test_workload_without_template_labels(self):
        with pytest.raises(LabelsNotFoundError, match="Labels not found"):
            set_label(daemonset(labels=False))

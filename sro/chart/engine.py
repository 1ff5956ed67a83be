import logging
from typing import Dict, List, Mapping, Optional, Tuple

import yaml

from sro.chart.assets import TemplateKind, classify, state_ordinal
from sro.chart.helmer import Chart, ChartTemplate, Helmer
from sro.cluster.kernel import is_template_affine
from sro.cluster.nodes import NodeLabeler
from sro.cluster.upgrade import ClusterKernelMap, RenderContext
from sro.sensors.base import OperatorSensor
from sro.common.models.keys import ObjectKey
from sro.state.statusupdater import HANDLING_STATE, StatusUpdater
from sro.types.models import SpecialResourceSpec
from sro.utils.errors import ChartStateError, ConfigurationError
from sro.utils.helpers import merge_layers

logger = logging.getLogger(__name__)


def split_templates(
    templates: List[ChartTemplate],
) -> Tuple[List[ChartTemplate], List[ChartTemplate], List[ChartTemplate]]:
    """Split templates into (stateful, named, stateless).

    Stateful templates are sorted by name, which is their execution order.
    """
    stateful, named, stateless = [], [], []
    for template in templates:
        kind = classify(template.name)
        if kind is TemplateKind.STATEFUL:
            stateful.append(template)
        elif kind is TemplateKind.NAMED:
            named.append(template)
        else:
            stateless.append(template)
    stateful.sort(key=lambda t: t.name)
    return stateful, named, stateless


def generate_name(template_name: str, resource_name: str) -> str:
    """Instance name of a state, e.g. simple-kmod-0000."""
    return f"{resource_name}-{state_ordinal(template_name)}"


def merge_values(chart_values: Mapping, user_values: Mapping, context: RenderContext) -> Dict:
    """Chart defaults, overridden by user values, overridden by the render context."""
    return merge_layers(chart_values, user_values, context.as_values())


class ChartStateEngine:
    """Applies a chart state by state, fanning kernel-affine states out per kernel."""

    def __init__(
        self,
        helmer: Helmer,
        status_updater: StatusUpdater,
        sensor: Optional[OperatorSensor] = None,
        node_labeler: Optional[NodeLabeler] = None,
    ) -> None:
        self.helmer = helmer
        self.status_updater = status_updater
        self.sensor = sensor or OperatorSensor()
        self.node_labeler = node_labeler

    def reconcile_states(
        self,
        owner: Dict,
        chart: Chart,
        values: Mapping,
        kernel_map: ClusterKernelMap,
        spec: SpecialResourceSpec,
    ) -> None:
        meta = owner["metadata"]
        name = meta["name"]
        ref = ObjectKey(name, meta.get("namespace"))
        values = values or {}
        stateful, named, stateless = split_templates(chart.templates)

        context: Optional[RenderContext] = None
        for template in stateful:
            context = self.reconcile_state(owner, ref, chart, named, template, values, kernel_map, spec)

        if context is None:
            context = self._fallback_context(kernel_map)

        nostate = chart.with_templates(named + stateless)
        logger.info(f"Executing stateless templates of {name}: {[t.name for t in nostate.templates]}")
        self.helmer.apply(
            nostate,
            merge_values(chart.values, values, context),
            owner,
            name,
            spec.namespace,
            spec.node_selector or {},
            context.kernel_full_version,
            context.operating_system_major_minor,
            False,
        )

    def reconcile_state(
        self,
        owner: Dict,
        ref: ObjectKey,
        chart: Chart,
        named: List[ChartTemplate],
        template: ChartTemplate,
        values: Mapping,
        kernel_map: ClusterKernelMap,
        spec: SpecialResourceSpec,
    ) -> RenderContext:
        """Apply one stateful template and return the last render context used."""
        name = ref.name
        logger.info(f"Executing state {template.name} of {name}")
        self.status_updater.set_as_progressing(ref, HANDLING_STATE, f"Working on: {template.name}")

        if spec.debug:
            logger.info(
                f"Debug active. Showing YAML contents of {template.name}:\n"
                f"{template.data.decode('utf-8', errors='replace')}"
            )

        instance_name = generate_name(template.name, name)
        step = chart.with_templates(named + [template])
        kernel_affine = is_template_affine(template.data)

        if not kernel_map:
            raise ConfigurationError("no kernel version detected, something is wrong")

        total = len(kernel_map)
        replicas = 0
        context = None
        for kernel_version, version in kernel_map.items():
            context = RenderContext.for_kernel(kernel_version, version, instance_name)
            merged = merge_values(chart.values, values, context)
            if spec.debug:
                logger.info(f"Debug active. Showing YAML values:\n{yaml.safe_dump(merged)}")

            replicas += 1
            last = replicas == total
            try:
                self.helmer.apply(
                    step,
                    merged,
                    owner,
                    name,
                    spec.namespace,
                    spec.node_selector or {},
                    kernel_version,
                    context.operating_system_major_minor,
                    spec.debug,
                )
            except Exception as e:
                self.sensor.on_replica_apply(name, template.name, kernel_version, False, e)
                if last:
                    self.sensor.on_state_complete(name, template.name, 0)
                    raise ChartStateError(f"failed to create state {template.name}: {e}") from e
                logger.warning(
                    f"State {template.name} failed for kernel {kernel_version} "
                    f"({replicas}/{total}), continuing with the next kernel: {e}"
                )
            else:
                self.sensor.on_replica_apply(name, template.name, kernel_version, True)

            if not kernel_affine:
                break

        self.sensor.on_state_complete(name, template.name, 1)
        if self.node_labeler is not None:
            self.node_labeler.label_nodes(instance_name, spec.node_selector or {})
        return context

    def _fallback_context(self, kernel_map: ClusterKernelMap) -> RenderContext:
        for kernel_version, version in kernel_map.items():
            return RenderContext.for_kernel(kernel_version, version)
        return RenderContext()

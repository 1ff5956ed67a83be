from .assets import TemplateKind, classify, is_stateful_name, is_named_template
from .helmer import Chart, ChartTemplate, Helmer, HelmCliHelmer
from .engine import ChartStateEngine, split_templates, generate_name, merge_values

__all__ = [
    "TemplateKind",
    "classify",
    "is_stateful_name",
    "is_named_template",
    "Chart",
    "ChartTemplate",
    "Helmer",
    "HelmCliHelmer",
    "ChartStateEngine",
    "split_templates",
    "generate_name",
    "merge_values",
]

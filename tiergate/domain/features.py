"""Feature keys understood by the gate."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from tiergate.domain.tiers import TemplateAccess

RESUMES_METRIC = "resumes"
TEMPLATE_PREFIX = "template:"


class FeatureKind(str, Enum):
    METERED = "metered"
    FLAG = "flag"
    TEMPLATE = "template"


@dataclass(frozen=True)
class FeatureSpec:
    key: str
    kind: FeatureKind
    metric: str | None = None
    template_access: TemplateAccess | None = None


FEATURES: Mapping[str, FeatureSpec] = MappingProxyType(
    {
        RESUMES_METRIC: FeatureSpec(RESUMES_METRIC, FeatureKind.METERED, metric=RESUMES_METRIC),
        "coverLetters": FeatureSpec("coverLetters", FeatureKind.FLAG),
        "noWatermark": FeatureSpec("noWatermark", FeatureKind.FLAG),
        **{
            f"{TEMPLATE_PREFIX}{access.value}": FeatureSpec(
                f"{TEMPLATE_PREFIX}{access.value}",
                FeatureKind.TEMPLATE,
                template_access=access,
            )
            for access in TemplateAccess
        },
    }
)


def resolve_feature(key: str) -> FeatureSpec | None:
    return FEATURES.get(key)


__all__ = [
    "FEATURES",
    "FeatureKind",
    "FeatureSpec",
    "RESUMES_METRIC",
    "TEMPLATE_PREFIX",
    "resolve_feature",
]

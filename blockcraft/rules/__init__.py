"""Declarative merge and conversion rule tables."""

from .registry import (
    TransformRule,
    MergeStrategy,
    ConversionStrategy,
    RuleRegistry,
    MergeRuleRegistry,
    ConversionRuleRegistry,
)

__all__ = [
    "TransformRule",
    "MergeStrategy",
    "ConversionStrategy",
    "RuleRegistry",
    "MergeRuleRegistry",
    "ConversionRuleRegistry",
]

"""Waivern PII Discovery.

Discovers and classifies personal data in databases, document stores and
files, routes uncertain classifications through a human confirmation
workflow, and records the results in a provenance graph linked to governed
data assets.
"""

__version__ = "0.1.0"

from waivern_pii_discovery.autolink import AutoLinkResolver
from waivern_pii_discovery.configuration import PIIDiscoveryConfiguration
from waivern_pii_discovery.confirmation import ConfirmationService
from waivern_pii_discovery.errors import (
    ConfigurationError,
    ConfirmationError,
    ConfirmationNotFoundError,
    ConfirmationValidationError,
    ExtractionError,
    GraphEntityNotFoundError,
    GraphStoreError,
    LLMConfigurationError,
    LLMConnectionError,
    LLMServiceError,
    PIIDiscoveryError,
    SourceConfigError,
    SourceError,
    StoreError,
)
from waivern_pii_discovery.pattern_matcher import PatternMatch, PIIPatternMatcher
from waivern_pii_discovery.pipeline import ClassificationPipeline, PipelineConfig
from waivern_pii_discovery.rule_store import LearnedRuleStore
from waivern_pii_discovery.service import PIIDiscoveryService
from waivern_pii_discovery.types import (
    AutoLinkProposal,
    AutoLinkReport,
    ClassificationOutcome,
    ClassificationSource,
    ClassificationStatus,
    ConfirmationRequest,
    ConfirmationStatus,
    DataAsset,
    Decision,
    DiscoveredEntity,
    FieldIdentity,
    LearnedRule,
    ScanReport,
    SourceType,
    status_for_confidence,
)

__all__ = [
    "AutoLinkProposal",
    "AutoLinkReport",
    "AutoLinkResolver",
    "ClassificationOutcome",
    "ClassificationPipeline",
    "ClassificationSource",
    "ClassificationStatus",
    "ConfigurationError",
    "ConfirmationError",
    "ConfirmationNotFoundError",
    "ConfirmationRequest",
    "ConfirmationService",
    "ConfirmationStatus",
    "ConfirmationValidationError",
    "DataAsset",
    "Decision",
    "DiscoveredEntity",
    "ExtractionError",
    "FieldIdentity",
    "GraphEntityNotFoundError",
    "GraphStoreError",
    "LLMConfigurationError",
    "LLMConnectionError",
    "LLMServiceError",
    "LearnedRule",
    "LearnedRuleStore",
    "PIIDiscoveryConfiguration",
    "PIIDiscoveryError",
    "PIIDiscoveryService",
    "PIIPatternMatcher",
    "PatternMatch",
    "PipelineConfig",
    "ScanReport",
    "SourceConfigError",
    "SourceError",
    "SourceType",
    "StoreError",
    "status_for_confidence",
]

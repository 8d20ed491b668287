"""
REASONFLOW CONFIG - Typed Configuration Loaded Once

Configuration lives in config/reasonflow.toml and is loaded once into
typed msgspec Structs. Every pure function in the core also accepts an
explicit config argument, so tests never depend on the global instance.

Sections:
    [flow]               Node/link magnitude constants
    [thresholds.*]       Default visibility thresholds per column
    [question_scoring]   Composite-score weights for question ordering
    [logging]            Level for the reasonflow.* logger namespace

Usage:
    from infrastructure.config import get_config

    config = get_config()
    config.flow.max_height   # 150
"""
import logging
import warnings
import msgspec
from typing import Optional, Dict, Any
from pathlib import Path


DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "reasonflow.toml"


# =============================================================================
# CONFIG SECTIONS
# =============================================================================

class FlowConfig(msgspec.Struct, kw_only=True, frozen=True):
    """Magnitude scaling for flow nodes and links."""
    min_height: float = 48.0               # Floor for any node magnitude
    max_height: float = 150.0              # Ceiling for any node magnitude
    priority_multiplier: float = 10.0      # Weight of (11 - priority)
    probability_multiplier: float = 8.0    # Weight of confidence, amplified by severity weight
    link_strength_scale: float = 20.0      # Ordinary link magnitude = strength * scale
    min_link_magnitude: float = 1.0
    investigative_impact_scale: float = 50.0


class SymptomThreshold(msgspec.Struct, kw_only=True, frozen=True):
    severity_threshold: float = 7.0        # Show severity 1..threshold
    show_all: bool = False


class DiagnosisThreshold(msgspec.Struct, kw_only=True, frozen=True):
    probability_threshold: float = 0.35    # Show probability >= threshold
    show_all: bool = False


class TreatmentThreshold(msgspec.Struct, kw_only=True, frozen=True):
    priority_threshold: float = 10.0       # Show priority 1..threshold
    show_all: bool = True


class ThresholdConfig(msgspec.Struct, kw_only=True, frozen=True):
    """Per-column visibility thresholds applied on top of the flow graph."""
    symptoms: SymptomThreshold = msgspec.field(default_factory=SymptomThreshold)
    diagnoses: DiagnosisThreshold = msgspec.field(default_factory=DiagnosisThreshold)
    treatments: TreatmentThreshold = msgspec.field(default_factory=TreatmentThreshold)


def _default_urgency_scores() -> Dict[str, float]:
    return {
        "red_flag": 10,
        "risk_assessment": 8,
        "drug_interaction": 7,
        "contraindication": 7,
        "allergy": 7,
        "warning": 6,
        "diagnostic_clarification": 6,
        "symptom_exploration": 4,
        "treatment_selection": 3,
    }


class QuestionScoringConfig(msgspec.Struct, kw_only=True, frozen=True):
    """Composite score = urgency_weight*urgency + relevance_weight*prob*scale + priority_weight*(inversion - priority)."""
    urgency_scores: Dict[str, float] = msgspec.field(default_factory=_default_urgency_scores)
    default_urgency: float = 3.0
    urgency_weight: float = 0.4
    relevance_weight: float = 0.4
    priority_weight: float = 0.2
    probability_multiplier: float = 10.0
    priority_inversion: float = 11.0


class LoggingConfig(msgspec.Struct, kw_only=True, frozen=True):
    level: str = "WARNING"


class ReasonFlowConfig(msgspec.Struct, kw_only=True, frozen=True):
    """Root configuration object."""
    flow: FlowConfig = msgspec.field(default_factory=FlowConfig)
    thresholds: ThresholdConfig = msgspec.field(default_factory=ThresholdConfig)
    question_scoring: QuestionScoringConfig = msgspec.field(default_factory=QuestionScoringConfig)
    logging: LoggingConfig = msgspec.field(default_factory=LoggingConfig)


# =============================================================================
# LOADING
# =============================================================================

def load_toml_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load raw configuration from reasonflow.toml.

    Returns:
        Dict with all configuration sections (empty on failure)
    """
    try:
        import tomllib
        config_path = path or DEFAULT_CONFIG_PATH

        with open(config_path, "rb") as f:
            return tomllib.load(f)
    except Exception as e:
        warnings.warn(f"Failed to load config from TOML: {e}")
        return {}


def parse_config(config_dict: Dict[str, Any]) -> ReasonFlowConfig:
    """
    Convert a raw dict into a typed ReasonFlowConfig.

    Invalid sections are reported and replaced by defaults rather than
    aborting startup.
    """
    try:
        return msgspec.convert(config_dict, type=ReasonFlowConfig)
    except msgspec.ValidationError as e:
        warnings.warn(f"Invalid configuration, using defaults: {e}")
        return ReasonFlowConfig()


def configure_logging(config: ReasonFlowConfig) -> None:
    """Apply the configured level to the reasonflow.* logger namespace."""
    level = logging.getLevelName(config.logging.level.upper())
    if not isinstance(level, int):
        warnings.warn(f"Unknown log level {config.logging.level!r}; keeping WARNING")
        level = logging.WARNING
    logging.getLogger("reasonflow").setLevel(level)


# =============================================================================
# GLOBAL INSTANCE
# =============================================================================

_config_instance: Optional[ReasonFlowConfig] = None


def get_config() -> ReasonFlowConfig:
    """Get the global configuration, loading it from TOML on first use."""
    global _config_instance
    if _config_instance is None:
        _config_instance = parse_config(load_toml_config())
        configure_logging(_config_instance)
    return _config_instance


def set_config(config: Optional[ReasonFlowConfig]) -> None:
    """
    Set the global configuration.

    Useful for testing with non-default thresholds or scaling.
    """
    global _config_instance
    _config_instance = config


def reset_config() -> None:
    """Reset the global configuration (forces a reload on next get_config())."""
    global _config_instance
    _config_instance = None

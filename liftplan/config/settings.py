from loguru import logger
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Tuning constants for the program engine.

    Every value can be overridden with a LIFTPLAN_ prefixed environment
    variable or a .env file. None of these constants has a documented
    derivation, so they stay configurable rather than hard-coded.
    """

    log_level: str = Field(default="INFO", validation_alias="LIFTPLAN_LOG_LEVEL")

    # ---- Template defaults ----
    default_weeks: int = Field(default=4, ge=1, validation_alias="LIFTPLAN_DEFAULT_WEEKS")
    default_session_minutes: int = Field(default=60, ge=20, le=180, validation_alias="LIFTPLAN_DEFAULT_SESSION_MINUTES")

    # ---- Softmax selection ----
    default_top_k: int = Field(default=6, ge=1, validation_alias="LIFTPLAN_DEFAULT_TOP_K")
    default_softmax_temperature: float = Field(default=0.9, gt=0, validation_alias="LIFTPLAN_DEFAULT_SOFTMAX_TEMPERATURE")
    default_novelty_decay: float = Field(default=0.35, ge=0, le=1, validation_alias="LIFTPLAN_DEFAULT_NOVELTY_DECAY")
    softmax_min_temperature: float = Field(default=0.1, gt=0, validation_alias="LIFTPLAN_SOFTMAX_MIN_TEMPERATURE")
    selection_noise_scale: float = Field(default=0.05, ge=0, validation_alias="LIFTPLAN_SELECTION_NOISE_SCALE")

    # ---- Recovery budget ----
    fatigue_budget_low: float = Field(default=70, validation_alias="LIFTPLAN_FATIGUE_BUDGET_LOW")
    fatigue_budget_medium: float = Field(default=90, validation_alias="LIFTPLAN_FATIGUE_BUDGET_MEDIUM")
    fatigue_budget_high: float = Field(default=110, validation_alias="LIFTPLAN_FATIGUE_BUDGET_HIGH")
    default_recovery_cost_per_set: float = Field(default=2.5, gt=0, validation_alias="LIFTPLAN_DEFAULT_RECOVERY_COST_PER_SET")

    # ---- Preview ----
    recovery_load_threshold_low: float = Field(default=65, validation_alias="LIFTPLAN_RECOVERY_LOAD_THRESHOLD_LOW")
    recovery_load_threshold_medium: float = Field(default=75, validation_alias="LIFTPLAN_RECOVERY_LOAD_THRESHOLD_MEDIUM")
    recovery_load_threshold_high: float = Field(default=85, validation_alias="LIFTPLAN_RECOVERY_LOAD_THRESHOLD_HIGH")
    recovery_load_multiplier_low: float = Field(default=0.9, validation_alias="LIFTPLAN_RECOVERY_LOAD_MULTIPLIER_LOW")
    recovery_load_multiplier_medium: float = Field(default=1.0, validation_alias="LIFTPLAN_RECOVERY_LOAD_MULTIPLIER_MEDIUM")
    recovery_load_multiplier_high: float = Field(default=1.1, validation_alias="LIFTPLAN_RECOVERY_LOAD_MULTIPLIER_HIGH")
    under_target_sets: int = Field(default=10, ge=0, validation_alias="LIFTPLAN_UNDER_TARGET_SETS")

    # ---- Week rules ----
    deload_set_factor: float = Field(default=0.6, gt=0, le=1, validation_alias="LIFTPLAN_DELOAD_SET_FACTOR")
    default_deload_rpe_ceiling: float = Field(default=7.5, ge=1, le=10, validation_alias="LIFTPLAN_DEFAULT_DELOAD_RPE_CEILING")

    # ---- Adaptation ----
    fatigue_spike_ratio: float = Field(default=1.25, gt=1, validation_alias="LIFTPLAN_FATIGUE_SPIKE_RATIO")
    fatigue_deload_volume_factor: float = Field(default=0.75, gt=0, le=1, validation_alias="LIFTPLAN_FATIGUE_DELOAD_VOLUME_FACTOR")
    autoreg_overshoot_threshold: float = Field(default=0.5, ge=0, validation_alias="LIFTPLAN_AUTOREG_OVERSHOOT_THRESHOLD")
    autoreg_undershoot_threshold: float = Field(default=1.0, ge=0, validation_alias="LIFTPLAN_AUTOREG_UNDERSHOOT_THRESHOLD")
    autoreg_rpe_step: float = Field(default=0.5, gt=0, validation_alias="LIFTPLAN_AUTOREG_RPE_STEP")
    pain_ban_threshold: float = Field(default=7, ge=0, le=10, validation_alias="LIFTPLAN_PAIN_BAN_THRESHOLD")
    weak_point_hold_severity: int = Field(default=4, ge=1, le=5, validation_alias="LIFTPLAN_WEAK_POINT_HOLD_SEVERITY")
    performance_lookback_days: int = Field(default=28, ge=1, validation_alias="LIFTPLAN_PERFORMANCE_LOOKBACK_DAYS")

    # ---- Reschedule ----
    missed_session_restart_threshold: int = Field(default=2, ge=1, validation_alias="LIFTPLAN_MISSED_SESSION_RESTART_THRESHOLD")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Validate that log level is one of the standard logging levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper_value = value.upper()
        if upper_value not in valid_levels:
            logger.warning(f"Invalid LIFTPLAN_LOG_LEVEL '{value}'. Valid levels are: {', '.join(sorted(valid_levels))}. Defaulting to INFO.")
            return "INFO"
        return upper_value

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    def fatigue_budget(self, profile: str) -> float:
        """Base weekly recovery budget for a fatigue profile."""
        return {
            "low": self.fatigue_budget_low,
            "medium": self.fatigue_budget_medium,
            "high": self.fatigue_budget_high,
        }[profile]

    def recovery_load_threshold(self, profile: str) -> float:
        return {
            "low": self.recovery_load_threshold_low,
            "medium": self.recovery_load_threshold_medium,
            "high": self.recovery_load_threshold_high,
        }[profile]

    def recovery_load_multiplier(self, profile: str) -> float:
        return {
            "low": self.recovery_load_multiplier_low,
            "medium": self.recovery_load_multiplier_medium,
            "high": self.recovery_load_multiplier_high,
        }[profile]


settings = EngineSettings()

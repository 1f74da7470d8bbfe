"""
MRV Pipeline - Runtime Configuration
Settings are read from the environment (and a local .env file) once per
process. The retry bound has no default and must be configured explicitly.
"""

import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from pipeline.errors import ConfigError


# env var -> settings field
_ENV_FIELDS = {
    "MRV_MAX_RETRIES": "max_retries",
    "MRV_CALL_TIMEOUT_SECONDS": "call_timeout_seconds",
    "MRV_MINT_TIMEOUT_SECONDS": "mint_timeout_seconds",
    "MRV_MINT_MAX_ATTEMPTS": "mint_max_attempts",
    "MRV_MINT_BACKOFF_SECONDS": "mint_backoff_seconds",
    "IPCC_TIER": "ipcc_tier",
    "BASELINE_EMISSION_FACTOR": "baseline_emission_factor",
    "AWD_SCALING_FACTOR": "awd_scaling_factor",
    "SRI_SCALING_FACTOR": "sri_scaling_factor",
    "GWP_METHANE": "gwp_methane",
    "UNCERTAINTY_THRESHOLD": "base_uncertainty",
    "MRV_SIGNING_SECRET": "signing_secret",
    "MRV_VERIFIER_ID": "verifier_id",
    "OPENAI_API_KEY": "openai_api_key",
    "OPENAI_MODEL": "openai_model",
}


class PipelineSettings(BaseModel):
    # Orchestration
    max_retries: int = Field(ge=0, description="Maximum number of QA-triggered re-runs from ingestion")
    call_timeout_seconds: float = Field(default=30.0, gt=0)
    mint_timeout_seconds: float = Field(default=60.0, gt=0)
    mint_max_attempts: int = Field(default=3, ge=1)
    mint_backoff_seconds: float = Field(default=1.0, ge=0)

    # IPCC 2019 Refinement parameters
    ipcc_tier: int = 2
    baseline_emission_factor: float = Field(default=1.30, gt=0, description="kg CH4/ha/season")
    awd_scaling_factor: float = Field(default=0.52, gt=0, le=1)
    sri_scaling_factor: float = Field(default=0.68, gt=0, le=1)
    gwp_methane: float = Field(default=28, gt=0)
    base_uncertainty: float = Field(default=0.25, ge=0, le=1)

    # Attestation
    signing_secret: str = "mrv-dev-secret"
    verifier_id: str = "UNDP-MRV-System"

    # Advisory language model
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"

    @property
    def has_llm(self) -> bool:
        key = self.openai_api_key
        return bool(key) and not key.startswith("sk-your-key")

    @classmethod
    def from_env(cls, overrides: Optional[Dict[str, Any]] = None) -> "PipelineSettings":
        load_dotenv()

        values: Dict[str, Any] = {}
        for env_key, field in _ENV_FIELDS.items():
            raw = os.environ.get(env_key)
            if raw not in (None, ""):
                values[field] = raw
        if overrides:
            values.update({k: v for k, v in overrides.items() if v is not None})

        if "max_retries" not in values:
            raise ConfigError("MRV_MAX_RETRIES must be set: the QA retry loop has no implicit bound")

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigError(f"Invalid pipeline configuration: {e}") from e

"""
IPCC 2019 Refinement Tier 2 methane model for flooded rice.

    CH4 = area x EFc x SFw x SFp x SFo x t

The baseline is continuous flooding. Pre-season and organic-amendment factors
are shared by both scenarios, so only the water regime differs and the
project estimate can never exceed the baseline.
"""

from typing import Any, Dict, List

from schemas.emission_schemas import EmissionEstimate, ScalingFactors
from schemas.farm_schemas import Farm, FarmingMethod, OrganicInput, Season

LOW_CONFIDENCE_THRESHOLD = 0.7
LOW_CONFIDENCE_PENALTY = 1.2


def organic_scaling_factor(organic_inputs: List[OrganicInput]) -> float:
    total = sum(i.quantity for i in organic_inputs)
    if total > 1000:
        return 1.5
    if total > 500:
        return 1.2
    if total > 0:
        return 1.1
    return 1.0


class IPCCTier2Model:
    def __init__(
        self,
        baseline_emission_factor: float = 1.30,
        awd_scaling_factor: float = 0.52,
        sri_scaling_factor: float = 0.68,
        tier: int = 2,
    ):
        self.efc = baseline_emission_factor
        self.water_factors = {
            FarmingMethod.CONTINUOUS_FLOOD.value: 1.0,
            FarmingMethod.AWD.value: awd_scaling_factor,
            FarmingMethod.SRI.value: sri_scaling_factor,
        }
        self.methodology = f"IPCC 2019 Refinement Tier {tier}"

    @classmethod
    def from_settings(cls, settings) -> "IPCCTier2Model":
        return cls(
            baseline_emission_factor=settings.baseline_emission_factor,
            awd_scaling_factor=settings.awd_scaling_factor,
            sri_scaling_factor=settings.sri_scaling_factor,
            tier=settings.ipcc_tier,
        )

    def _estimate(self, farm: Farm, sfw: float, sfo: float, method: str) -> EmissionEstimate:
        factors = ScalingFactors(SFw=sfw, SFp=1.0, SFo=sfo)
        total = farm.area * self.efc * factors.SFw * factors.SFp * factors.SFo
        return EmissionEstimate(
            total_ch4=round(total, 6),
            area=farm.area,
            emission_factor=self.efc,
            scaling_factors=factors,
            methodology=self.methodology,
            farming_method=method,
        )

    def baseline(self, season: Season, farm: Farm) -> EmissionEstimate:
        sfo = organic_scaling_factor(season.organic_inputs)
        return self._estimate(farm, 1.0, sfo, FarmingMethod.CONTINUOUS_FLOOD.value)

    def project(self, season: Season, farm: Farm, analysis: Dict[str, Any]) -> EmissionEstimate:
        method = season.farming_method.value
        sfw = self.water_factors.get(method, 1.0)

        # Conservative adjustment when the satellite evidence is weak
        confidence = analysis.get("confidence")
        if confidence is not None and confidence < LOW_CONFIDENCE_THRESHOLD:
            sfw = min(sfw * LOW_CONFIDENCE_PENALTY, 1.0)

        sfo = organic_scaling_factor(season.organic_inputs)
        return self._estimate(farm, sfw, sfo, method)

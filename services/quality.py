"""
Rule-based quality assurance for MRV bundles.
"""

from datetime import date
from typing import Any, Dict, List, Optional

from schemas.report_schemas import QualityAssessment, QualityCheck

FARM_FIELDS = ("area", "coordinates", "village")
SEASON_FIELDS = ("farming_method", "transplant_date", "crop")

MIN_SEASON_DAYS = 90
MAX_SEASON_DAYS = 180


def _parse_date(value: Any) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def check_data_completeness(bundle: Dict[str, Any]) -> float:
    farm = bundle.get("farm_data") or {}
    season = bundle.get("season_data") or {}

    required = len(FARM_FIELDS) + len(SEASON_FIELDS) + 1
    provided = sum(1 for f in FARM_FIELDS if farm.get(f))
    provided += sum(1 for f in SEASON_FIELDS if season.get(f))
    if bundle.get("satellite_data"):
        provided += 1

    return provided / required


def reduction_percentage(emission_calculations: Optional[Dict[str, Any]]) -> float:
    calc = emission_calculations or {}
    baseline = (calc.get("baseline") or {}).get("total_ch4")
    project = (calc.get("project") or {}).get("total_ch4")
    if not baseline or project is None:
        return 0.0
    return (baseline - project) / baseline * 100


def check_temporal_consistency(season: Dict[str, Any]) -> List[str]:
    issues = []
    sowing = _parse_date(season.get("sowing_date"))
    transplant = _parse_date(season.get("transplant_date"))
    harvest = _parse_date(season.get("harvest_date"))

    ordered = [d for d in (sowing, transplant, harvest) if d is not None]
    if ordered != sorted(ordered):
        issues.append("Season dates out of order (sowing, transplant, harvest)")

    if transplant and harvest:
        duration = (harvest - transplant).days
        if duration < MIN_SEASON_DAYS:
            issues.append("Unusually short growing season")
        elif duration > MAX_SEASON_DAYS:
            issues.append("Unusually long growing season")

    return issues


class RuleBasedQAEvaluator:
    """
    Score = completeness - 0.2 per issue - 0.1 per warning, clamped to [0, 1].
    Any issue turns the recommendation into NEEDS_REVIEW.
    """

    def __init__(self, issue_penalty: float = 0.2, warning_penalty: float = 0.1):
        self.issue_penalty = issue_penalty
        self.warning_penalty = warning_penalty

    def assess(self, bundle: Dict[str, Any]) -> QualityAssessment:
        issues: List[str] = []
        warnings: List[str] = []
        checks: List[QualityCheck] = []

        # 1. Completeness
        completeness = check_data_completeness(bundle)
        if completeness < 0.8:
            issues.append("Insufficient data completeness")
        checks.append(QualityCheck(
            check="DATA_COMPLETENESS",
            status="PASS" if completeness >= 0.8 else "FAIL",
            detail=f"{completeness:.0%} of required fields present",
        ))

        # 2. Satellite confidence
        analysis = bundle.get("remote_sensing_analysis") or {}
        confidence = analysis.get("confidence") or 0.0
        if confidence < 0.7:
            warnings.append("Low satellite verification confidence")
        checks.append(QualityCheck(
            check="SATELLITE_CONFIDENCE",
            status="PASS" if confidence >= 0.7 else "WARN",
            detail=f"confidence={confidence:.2f}",
        ))

        # 3. Reduction reasonableness
        pct = reduction_percentage(bundle.get("emission_calculations"))
        status = "PASS"
        if pct > 80:
            issues.append("Unreasonably high emission reduction claimed")
            status = "FAIL"
        elif pct < 5:
            warnings.append("Very low emission reduction achieved")
            status = "WARN"
        checks.append(QualityCheck(check="REDUCTION_BOUNDS", status=status, detail=f"{pct:.1f}% reduction"))

        # 4. Method vs sensing consistency
        consistent = confidence > 0.5
        if not consistent:
            issues.append("Farming method inconsistent with satellite data")
        checks.append(QualityCheck(
            check="METHOD_CONSISTENCY",
            status="PASS" if consistent else "FAIL",
            detail=f"declared={analysis.get('declared_method')} observed={analysis.get('observed_method')}",
        ))

        # 5. Temporal consistency
        temporal = check_temporal_consistency(bundle.get("season_data") or {})
        issues.extend(temporal)
        checks.append(QualityCheck(
            check="TEMPORAL_CONSISTENCY",
            status="FAIL" if temporal else "PASS",
            detail="; ".join(temporal) or "season dates consistent",
        ))

        score = completeness - len(issues) * self.issue_penalty - len(warnings) * self.warning_penalty

        return QualityAssessment(
            score=round(max(0.0, min(1.0, score)), 4),
            recommendation="PROCEED" if not issues else "NEEDS_REVIEW",
            flags=issues,
            warnings=warnings,
            data_completeness=round(completeness, 4),
            reduction_percentage=round(pct, 2),
            checks=checks,
        )

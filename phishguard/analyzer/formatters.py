"""Human-readable text for findings and verdict fields."""

from typing import Optional

from ..constants import AgeCategory
from .models import Finding


def format_reason(finding: Finding) -> str:
    """Render one finding as a reason line."""
    data = finding.data
    check = finding.check

    if check == "reputation":
        if finding.code == "phishing":
            return f"Domain found in phishing database ({data.get('source')})"
        return f"Domain verified as legitimate ({data.get('source')})"

    if check == "tls":
        return str(data.get("issue") or "No SSL certificate")

    if check == "age":
        days = data.get("days")
        age = f"{days} days old" if days is not None else "age unknown"
        if finding.code == AgeCategory.VERY_NEW.value:
            return f"Very new domain ({age})"
        return f"New domain ({age})"

    if check == "pattern":
        return f"{data.get('description')} (weight: {int(finding.weight)})"

    if check == "keyword":
        return f'Phishing keyword "{finding.code}" with context (score: {finding.weight:.1f})'

    if check == "homograph":
        return f"Homograph attack detected: {', '.join(data.get('characters') or ())}"

    if check == "structure":
        return str(data.get("issue"))

    if check == "redirect":
        return "Suspicious URL redirects detected"

    return finding.code


def format_domain_age(days: Optional[int]) -> str:
    """Friendly age string, e.g. "4 months (Recent)"."""
    if days is None:
        return "Unknown"
    if days < 30:
        return f"{days} days (Very New)"
    if days < 90:
        return f"{days // 30} months (New)"
    if days < 365:
        return f"{days // 30} months (Recent)"
    return f"{days // 365} years (Established)"

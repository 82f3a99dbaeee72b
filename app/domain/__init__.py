"""Domain models used across application layer boundaries."""

from .models import HealthStatus, LedgerSourceType, domain_parse_source_type
from .timeline import domain_build_stage_event

__all__ = ["HealthStatus", "LedgerSourceType", "domain_parse_source_type", "domain_build_stage_event"]

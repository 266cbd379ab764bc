"""Incident state tracking."""

from .coordinator import IncidentAction, IncidentCoordinator, IncidentDecision
from .models import Incident

__all__ = ["Incident", "IncidentAction", "IncidentCoordinator", "IncidentDecision"]

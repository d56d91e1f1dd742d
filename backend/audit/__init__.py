from .detectors import run_detectors
from .scoring import suggest_cancellations

__all__ = ["run_detectors", "suggest_cancellations"]

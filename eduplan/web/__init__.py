"""Flask web frontend for EduPlan."""

"""EduPlan AI: lesson plans, tests, and camera capture for teachers."""

__version__ = "1.0.0"

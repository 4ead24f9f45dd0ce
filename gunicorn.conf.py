"""Gunicorn configuration for EduPlan AI.

Run with: gunicorn -c gunicorn.conf.py "eduplan.web.app:create_app()"
"""

bind = "0.0.0.0:8000"
workers = 1  # Session controllers live in process memory
threads = 4
timeout = 120  # Generation calls can be slow
accesslog = "-"
errorlog = "-"
loglevel = "info"

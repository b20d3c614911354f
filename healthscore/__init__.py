"""
Visibility & Health Scoring Engine.

Turns daily Search Console, GA4 and PageSpeed aggregates into a 0-1000
health score across five pillars, and derives remediation actions and
alerts from the resulting breakdown.
"""

__version__ = "0.1.0"

"""
eventscale - scheduled, time-bounded infrastructure actions.

Events name a start and end time and a provisioning action (an SSM
Automation document or a Service Catalog product).  The scheduler notices
events about to start, the dispatcher starts exactly one durable workflow
execution per event, and the workflow engine drives each event through
``deploy → scaled → destroy → ended`` (or ``failed``), publishing every
transition on the status bus.
"""

__version__ = "0.1.0"

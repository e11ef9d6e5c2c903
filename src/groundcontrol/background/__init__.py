"""
Background task subsystem.

Components:
- models.py: data structures (BackgroundTask, BackgroundTaskStatus, LaunchInput, OutputResult)
- registry.py: in-memory task registry + state transitions
- manager.py: launch / resume / cancel / get_result and the idle-polling drivers
- formatting.py: transcript normalization and role-headed output blocks
"""

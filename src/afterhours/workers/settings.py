"""arq worker settings module.

Import path for arq CLI: arq afterhours.workers.settings.WorkerSettings
"""

from __future__ import annotations

from afterhours.recaps.worker import EngagementWorkerSettings as WorkerSettings

__all__ = ["WorkerSettings"]

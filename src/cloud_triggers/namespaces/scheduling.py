"""Scheduled functions and task queue functions."""

from __future__ import annotations

from collections.abc import Callable

from cloud_triggers.namespaces.base import H, Namespace
from cloud_triggers.options import ScheduleOptions, TaskQueueOptions


class SchedulerNamespace(Namespace):
    path = ("scheduler",)

    def on_schedule(
        self, schedule: str, *, options: ScheduleOptions | None = None
    ) -> Callable[[H], H]:
        """Run the handler on a cron (or App Engine ``every N minutes``) schedule.

        The handler receives a :class:`~cloud_triggers.events.ScheduledEvent`.
        """

        return self._trigger("on_schedule", schedule, options)


class TasksNamespace(Namespace):
    path = ("tasks",)

    def on_task_dispatched(
        self, name: str, *, options: TaskQueueOptions | None = None
    ) -> Callable[[H], H]:
        """Declare a Cloud Tasks queue consumer.

        The handler receives a :class:`~cloud_triggers.events.TaskRequest`.
        """

        return self._trigger("on_task_dispatched", name, options)

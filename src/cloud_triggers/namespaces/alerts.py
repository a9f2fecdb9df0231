"""Firebase Alerts triggers, grouped by the vendor that publishes them."""

from __future__ import annotations

from collections.abc import Callable

from cloud_triggers.namespaces.base import H, Namespace
from cloud_triggers.options import AlertOptions, AlertType
from cloud_triggers.registry import FunctionsContext


class CrashlyticsAlerts(Namespace):
    path = ("alerts", "crashlytics")

    def on_new_fatal_issue_published(
        self, *, options: AlertOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_new_fatal_issue_published", options=options)

    def on_new_nonfatal_issue_published(
        self, *, options: AlertOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_new_nonfatal_issue_published", options=options)

    def on_regression_alert_published(
        self, *, options: AlertOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_regression_alert_published", options=options)

    def on_stability_digest_published(
        self, *, options: AlertOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_stability_digest_published", options=options)

    def on_velocity_alert_published(
        self, *, options: AlertOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_velocity_alert_published", options=options)

    def on_new_anr_issue_published(
        self, *, options: AlertOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_new_anr_issue_published", options=options)


class BillingAlerts(Namespace):
    path = ("alerts", "billing")

    def on_plan_update_published(self, *, options: AlertOptions | None = None) -> Callable[[H], H]:
        return self._trigger("on_plan_update_published", options=options)

    def on_plan_automated_update_published(
        self, *, options: AlertOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_plan_automated_update_published", options=options)


class AppDistributionAlerts(Namespace):
    path = ("alerts", "app_distribution")

    def on_new_tester_ios_device_published(
        self, *, options: AlertOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_new_tester_ios_device_published", options=options)

    def on_in_app_feedback_published(
        self, *, options: AlertOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_in_app_feedback_published", options=options)


class PerformanceAlerts(Namespace):
    path = ("alerts", "performance")

    def on_threshold_alert_published(
        self, *, options: AlertOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_threshold_alert_published", options=options)


class AlertsNamespace(Namespace):
    """Firebase Alerts triggers.

    ``on_alert_published`` takes any alert type; the vendor sub-namespaces
    (``crashlytics``, ``billing``, ``app_distribution``, ``performance``) fix it.
    """

    path = ("alerts",)

    def __init__(self, context: FunctionsContext) -> None:
        super().__init__(context)
        self.crashlytics = CrashlyticsAlerts(context)
        self.billing = BillingAlerts(context)
        self.app_distribution = AppDistributionAlerts(context)
        self.performance = PerformanceAlerts(context)

    def on_alert_published(
        self, alert_type: AlertType | str, *, options: AlertOptions | None = None
    ) -> Callable[[H], H]:
        return self._trigger("on_alert_published", alert_type, options)

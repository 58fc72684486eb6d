"""Operator alerting on accumulated audit findings.

Findings are a passive log by default. With a positive threshold, a
finding type whose unresolved count reaches it raises one operator alert;
the alarm re-arms once resolutions bring the count back below threshold.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Any

from taklaget.common.config import TaklagetConfig
from taklaget.integrity.findings import AuditFinding, FindingsLog, FindingType

logger = logging.getLogger(__name__)


class AlarmState(StrEnum):
    """Alarm state values."""

    OK = "OK"
    ALARM = "ALARM"


@dataclass(frozen=True)
class AlertConfig:
    """Configuration for findings alerting."""

    threshold: int = 0
    topic: str = "integrity-alerts"

    @property
    def enabled(self) -> bool:
        return self.threshold > 0

    @classmethod
    def from_settings(cls, settings: TaklagetConfig) -> AlertConfig:
        return cls(threshold=settings.findings_alert_threshold)


@dataclass(frozen=True)
class FindingsAlarm:
    """Alarm tracking unresolved findings of one type."""

    finding_type: FindingType
    unresolved: int = 0
    state: AlarmState = AlarmState.OK
    last_state_change: float = field(default_factory=time.time)


@dataclass(frozen=True)
class OperatorAlert:
    """Notification payload sent to operators."""

    topic: str
    subject: str
    message: str
    finding_type: FindingType
    unresolved: int
    timestamp: float = field(default_factory=time.time)


class FindingsAlertMonitor:
    """Track unresolved findings per type and alert past a threshold."""

    def __init__(self, config: AlertConfig | None = None) -> None:
        self._config = config or AlertConfig()
        self._alarms: dict[FindingType, FindingsAlarm] = {
            t: FindingsAlarm(finding_type=t) for t in FindingType
        }
        self._alerts: list[OperatorAlert] = []

    @property
    def config(self) -> AlertConfig:
        return self._config

    def observe(self, finding: AuditFinding) -> None:
        """Count a newly recorded finding."""
        alarm = self._alarms[finding.type]
        self._update(alarm, alarm.unresolved + 1)

    def refresh(self, findings: FindingsLog) -> None:
        """Recount unresolved findings from the log, e.g. after resolutions."""
        counts = {t: 0 for t in FindingType}
        for finding in findings.query(unresolved_only=True):
            counts[finding.type] += 1
        for finding_type, count in counts.items():
            self._update(self._alarms[finding_type], count)

    def _update(self, alarm: FindingsAlarm, unresolved: int) -> None:
        breaching = self._config.enabled and unresolved >= self._config.threshold
        new_state = AlarmState.ALARM if breaching else AlarmState.OK
        if new_state == AlarmState.ALARM and alarm.state != AlarmState.ALARM:
            self._send_alert(alarm.finding_type, unresolved)
        self._alarms[alarm.finding_type] = replace(
            alarm,
            unresolved=unresolved,
            state=new_state,
            last_state_change=time.time() if new_state != alarm.state else alarm.last_state_change,
        )

    def _send_alert(self, finding_type: FindingType, unresolved: int) -> None:
        alert = OperatorAlert(
            topic=self._config.topic,
            subject=f"[integrity] {finding_type}",
            message=(
                f"{unresolved} unresolved '{finding_type}' findings "
                f"(threshold: {self._config.threshold}). Manual remediation required."
            ),
            finding_type=finding_type,
            unresolved=unresolved,
        )
        logger.warning("%s: %s", alert.subject, alert.message)
        self._alerts.append(alert)

    def get_alarm_states(self) -> dict[FindingType, AlarmState]:
        return {k: v.state for k, v in self._alarms.items()}

    def get_alerts(self) -> list[OperatorAlert]:
        return list(self._alerts)

    def get_stats(self) -> dict[str, Any]:
        states = self.get_alarm_states()
        return {
            "enabled": self._config.enabled,
            "alarms_in_alarm": sum(1 for s in states.values() if s == AlarmState.ALARM),
            "unresolved_total": sum(a.unresolved for a in self._alarms.values()),
            "alerts_sent": len(self._alerts),
        }


__all__ = [
    "AlarmState",
    "AlertConfig",
    "FindingsAlarm",
    "OperatorAlert",
    "FindingsAlertMonitor",
]

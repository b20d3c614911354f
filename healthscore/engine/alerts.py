"""
Alert Engine - evaluates stored alert rules after each scoring run.

Each enabled AlertRule is dispatched to the check for its type. A check
compares the scored date against a trailing baseline (score history,
site impressions, page CTR or organic conversion rate) and proposes alerts.
Proposed alerts are suppressed while an active alert with the same type and
entity key exists inside the dedup window.

A failing rule is logged and skipped; the remaining rules still run.
"""

from datetime import date, datetime, timedelta
from typing import Callable

import structlog

from healthscore.config import Settings
from healthscore.models.alerts import Alert, AlertRule
from healthscore.models.enums import AlertType, Pillar, Severity
from healthscore.storage.base import StorageBackend

logger = structlog.get_logger()


# Expected page CTR when the site has no CTR history
DEFAULT_EXPECTED_CTR = 0.03


def default_alert_rules() -> list[AlertRule]:
    """
    The stock rule set, one rule per type.

    Rule ids are stable so seeding twice overwrites instead of duplicating.
    """
    return [
        AlertRule(
            rule_id="default_score_drop_7d",
            type=AlertType.SCORE_DROP_7D,
            thresholds={"min_drop": 50},
            severity=Severity.HIGH,
        ),
        AlertRule(
            rule_id="default_pillar_drop",
            type=AlertType.PILLAR_DROP,
            thresholds={"min_pct_drop": 0.2},
            severity=Severity.MEDIUM,
        ),
        AlertRule(
            rule_id="default_visibility_impressions_drop",
            type=AlertType.VISIBILITY_IMPRESSIONS_DROP,
            thresholds={"min_pct_drop": 0.3},
            severity=Severity.HIGH,
        ),
        AlertRule(
            rule_id="default_ctr_anomaly",
            type=AlertType.CTR_ANOMALY,
            thresholds={"min_impressions": 100, "ctr_ratio": 0.5},
            severity=Severity.MEDIUM,
        ),
        AlertRule(
            rule_id="default_funnel_conv_drop",
            type=AlertType.FUNNEL_CONV_DROP,
            thresholds={"min_pct_drop": 0.3},
            severity=Severity.HIGH,
        ),
    ]


class AlertEngine:
    """
    Runs enabled alert rules for a date and persists new alerts.

    Attributes:
        storage: Backend for score history, metrics, rules and alerts
        settings: Source identifiers and dedup window

    Example:
        >>> engine = AlertEngine(storage=storage, settings=get_settings())
        >>> for alert in engine.run_alerts(date(2026, 1, 15)):
        ...     print(alert.type.value, alert.message)
    """

    def __init__(self, storage: StorageBackend, settings: Settings):
        self.storage = storage
        self.settings = settings
        self.logger = structlog.get_logger()

        self._checks: dict[AlertType, Callable[[date, AlertRule], list[Alert]]] = {
            AlertType.SCORE_DROP_7D: self._check_score_drop,
            AlertType.PILLAR_DROP: self._check_pillar_drop,
            AlertType.VISIBILITY_IMPRESSIONS_DROP: self._check_impressions_drop,
            AlertType.CTR_ANOMALY: self._check_ctr_anomaly,
            AlertType.FUNNEL_CONV_DROP: self._check_conversion_drop,
        }

    def seed_default_rules(self) -> list[AlertRule]:
        """Write default_alert_rules() to storage (idempotent)."""
        rules = default_alert_rules()
        for rule in rules:
            self.storage.write_alert_rule(rule)
        self.logger.info("default_alert_rules_seeded", count=len(rules))
        return rules

    def run_alerts(self, score_date: date) -> list[Alert]:
        """
        Evaluate every enabled rule for a date.

        Returns:
            Alerts created by this run (suppressed duplicates excluded)

        Raises:
            StorageError: If the enabled rules cannot be read
        """
        rules = self.storage.read_alert_rules(enabled=True)
        self.logger.info(
            "alert_run_started", score_date=score_date.isoformat(), rules=len(rules)
        )

        created: list[Alert] = []
        for rule in rules:
            check = self._checks.get(rule.type)
            if check is None:
                self.logger.warning(
                    "alert_rule_type_unknown", rule_id=rule.rule_id, type=str(rule.type)
                )
                continue

            try:
                for alert in check(score_date, rule):
                    if self._create_alert(alert):
                        created.append(alert)
            except Exception as e:
                self.logger.error(
                    "alert_rule_failed",
                    rule_id=rule.rule_id,
                    type=rule.type.value,
                    error=str(e),
                )

        self.logger.info(
            "alert_run_completed", score_date=score_date.isoformat(), created=len(created)
        )
        return created

    def _create_alert(self, alert: Alert) -> bool:
        since = datetime.utcnow() - timedelta(hours=self.settings.alert_dedup_hours)
        existing = self.storage.find_recent_alert(alert.type, alert.entity_key, since)
        if existing:
            self.logger.debug(
                "alert_suppressed",
                type=alert.type.value,
                entity_key=alert.entity_key,
                existing_alert_id=existing.alert_id,
            )
            return False

        self.storage.write_alert(alert)
        self.logger.info(
            "alert_created",
            alert_id=alert.alert_id,
            type=alert.type.value,
            entity_key=alert.entity_key,
            message=alert.message,
        )
        return True

    # =========================================================================
    # Checks
    # =========================================================================

    def _check_score_drop(self, score_date: date, rule: AlertRule) -> list[Alert]:
        snapshot = self.storage.read_score_snapshot(score_date)
        averages = self.storage.read_score_trailing_averages(
            score_date, days=rule.lookback_days
        )

        current = snapshot.total_score if snapshot else 0
        previous = averages["total_score"] if averages else float(current)
        drop = previous - current

        if drop < rule.thresholds.get("min_drop", 0):
            return []

        return [
            Alert(
                type=rule.type,
                severity=rule.severity,
                entity_type="score",
                entity_key="total",
                message=f"Total score dropped by {round(drop)} points",
                details={"current": current, "previous": round(previous), "drop": round(drop)},
            )
        ]

    def _check_pillar_drop(self, score_date: date, rule: AlertRule) -> list[Alert]:
        snapshot = self.storage.read_score_snapshot(score_date)
        if snapshot is None:
            return []

        averages = self.storage.read_score_trailing_averages(
            score_date, days=rule.lookback_days
        )
        if averages is None:
            return []

        alerts = []
        for pillar in Pillar:
            column = f"{pillar.field_name}_score"
            current = getattr(snapshot, column)
            previous = averages[column]
            if previous <= 0:
                continue

            pct_drop = (previous - current) / previous
            if pct_drop >= rule.thresholds.get("min_pct_drop", 0):
                alerts.append(
                    Alert(
                        type=rule.type,
                        severity=rule.severity,
                        entity_type="pillar",
                        entity_key=pillar.value,
                        message=f"{pillar.value} score dropped by {round(pct_drop * 100)}%",
                        details={
                            "pillar": pillar.value,
                            "current": current,
                            "previous": round(previous),
                            "pct_drop": round(pct_drop * 100),
                        },
                    )
                )
        return alerts

    def _check_impressions_drop(self, score_date: date, rule: AlertRule) -> list[Alert]:
        site_url = self.settings.require_site_url()

        site = self.storage.read_site_metrics(site_url, score_date)
        trailing = self.storage.read_site_trailing_averages(
            site_url, score_date, days=rule.lookback_days
        )

        current = site.impressions if site else 0
        previous = trailing.impressions if trailing.impressions is not None else float(current)
        if previous <= 0:
            return []

        pct_drop = (previous - current) / previous
        if pct_drop < rule.thresholds.get("min_pct_drop", 0):
            return []

        return [
            Alert(
                type=rule.type,
                severity=rule.severity,
                entity_type="site",
                entity_key=site_url,
                message=f"Search impressions dropped by {round(pct_drop * 100)}%",
                details={
                    "current": current,
                    "previous": round(previous),
                    "pct_drop": round(pct_drop * 100),
                },
            )
        ]

    def _check_ctr_anomaly(self, score_date: date, rule: AlertRule) -> list[Alert]:
        site_url = self.settings.require_site_url()
        min_impressions = int(rule.thresholds.get("min_impressions", 0))
        ctr_ratio_threshold = rule.thresholds.get("ctr_ratio", 0)

        pages = self.storage.read_page_metrics(
            site_url, score_date, min_impressions=min_impressions
        )
        trailing = self.storage.read_site_trailing_averages(
            site_url, score_date, days=rule.lookback_days
        )
        expected_ctr = trailing.ctr or DEFAULT_EXPECTED_CTR

        alerts = []
        for page in pages:
            ratio = page.ctr / expected_ctr
            if ratio < ctr_ratio_threshold:
                alerts.append(
                    Alert(
                        type=rule.type,
                        severity=rule.severity,
                        entity_type="page",
                        entity_key=page.page,
                        message=f"Low CTR on high-impression page: {page.page}",
                        details={
                            "page": page.page,
                            "impressions": page.impressions,
                            "ctr": page.ctr,
                            "expected_ctr": expected_ctr,
                            "ratio": round(ratio, 2),
                        },
                    )
                )
        return alerts

    def _check_conversion_drop(self, score_date: date, rule: AlertRule) -> list[Alert]:
        property_id = self.settings.require_property_id()

        landing = self.storage.read_landing_aggregates(property_id, score_date)
        previous_rate = self.storage.read_conversion_rate_trailing_average(
            property_id, score_date, days=rule.lookback_days
        )

        current_rate = landing.conversion_rate
        if previous_rate is None:
            previous_rate = current_rate
        if previous_rate <= 0:
            return []

        pct_drop = (previous_rate - current_rate) / previous_rate
        if pct_drop < rule.thresholds.get("min_pct_drop", 0):
            return []

        return [
            Alert(
                type=rule.type,
                severity=rule.severity,
                entity_type="conversion",
                entity_key="organic",
                message=f"Conversion rate dropped by {round(pct_drop * 100)}%",
                details={
                    "current_rate": round(current_rate, 4),
                    "previous_rate": round(previous_rate, 4),
                    "pct_drop": round(pct_drop * 100),
                },
            )
        ]

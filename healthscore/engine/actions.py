"""
Action Generator - turns weak score components into remediation actions.

ACTION_RULES is a fixed threshold table. Each rule looks at one component of
one pillar; rules fire independently, and every fired rule yields exactly one
Action. Actions are upserted by (date, pillar, key), so re-running a date
refreshes rows instead of duplicating them.
"""

from datetime import date, datetime

import structlog

from healthscore.models.actions import Action, ActionRule
from healthscore.models.enums import Comparison, Pillar, Severity
from healthscore.models.scores import ScoreBreakdown
from healthscore.storage.base import ScoreRepository

logger = structlog.get_logger()


ACTION_RULES: tuple[ActionRule, ...] = (
    # P1 Index & Crawl Health
    ActionRule(
        pillar=Pillar.P1,
        component="impressions_trend",
        threshold=40,
        key="low_impressions_trend",
        severity=Severity.HIGH,
        title="Impressions Declining",
        description=(
            "Your search impressions are trending downward. Review recent content "
            "changes and check for indexing issues."
        ),
        impact_points=50,
    ),
    ActionRule(
        pillar=Pillar.P1,
        component="index_coverage",
        threshold=80,
        key="low_index_coverage",
        severity=Severity.CRITICAL,
        title="Low Index Coverage",
        description=(
            "Some pages may not be indexed. Check Search Console for crawl errors "
            "and submit sitemaps."
        ),
        impact_points=80,
    ),
    # P2 Search Visibility
    ActionRule(
        pillar=Pillar.P2,
        component="clicks_trend",
        threshold=40,
        key="clicks_declining",
        severity=Severity.HIGH,
        title="Clicks Declining",
        description=(
            "Organic clicks are decreasing. Review title tags, meta descriptions, "
            "and rankings for key queries."
        ),
        impact_points=60,
    ),
    ActionRule(
        pillar=Pillar.P2,
        component="avg_position",
        comparison=Comparison.LESS_THAN,
        # avg_position is 0-50 points; below 25 means ranking past position 30
        threshold=25,
        key="poor_avg_position",
        severity=Severity.MEDIUM,
        title="Average Position Too Low",
        description=(
            "Your average search position is beyond page 3. Focus on improving "
            "content quality and building authority."
        ),
        impact_points=40,
    ),
    # P3 Engagement & Intent
    ActionRule(
        pillar=Pillar.P3,
        component="ctr_quality",
        threshold=40,
        key="low_ctr",
        severity=Severity.HIGH,
        title="Low Click-Through Rate",
        description=(
            "CTR is below expectations. Optimize title tags and meta descriptions "
            "to be more compelling."
        ),
        impact_points=50,
    ),
    ActionRule(
        pillar=Pillar.P3,
        component="engagement_rate",
        threshold=40,
        key="low_engagement",
        severity=Severity.MEDIUM,
        title="Low User Engagement",
        description=(
            "Users are not engaging with your content. Improve content quality, "
            "readability, and call-to-actions."
        ),
        impact_points=45,
    ),
    # P4 Content Performance
    ActionRule(
        pillar=Pillar.P4,
        component="top_pages_growth",
        threshold=35,
        key="stagnant_content",
        severity=Severity.MEDIUM,
        title="Content Growth Stagnant",
        description=(
            "Top-performing pages are not growing. Create new content targeting "
            "underserved keywords."
        ),
        impact_points=40,
    ),
    ActionRule(
        pillar=Pillar.P4,
        component="conversion_quality",
        threshold=20,
        key="low_conversions",
        severity=Severity.HIGH,
        title="Low Conversion Rate",
        description=(
            "Organic traffic is not converting. Optimize landing pages, CTAs, "
            "and user flows."
        ),
        impact_points=35,
    ),
    # P5 Technical Experience
    ActionRule(
        pillar=Pillar.P5,
        component="core_web_vitals",
        threshold=40,
        key="poor_core_web_vitals",
        severity=Severity.HIGH,
        title="Poor Core Web Vitals",
        description=(
            "LCP and CLS scores are below Google recommended thresholds. Optimize "
            "images, fonts, and layout shifts."
        ),
        impact_points=30,
    ),
)


class ActionGenerator:
    """
    Evaluates ACTION_RULES against a breakdown and persists fired actions.

    Attributes:
        storage: Repository the actions are upserted into
        rules: Rule table to evaluate (ACTION_RULES unless overridden)

    Example:
        >>> generator = ActionGenerator(storage=storage)
        >>> actions = generator.generate_actions(score_date, snapshot.breakdown)
        >>> for action in actions:
        ...     print(action.pillar.value, action.key, action.severity.value)
    """

    def __init__(
        self,
        storage: ScoreRepository,
        rules: tuple[ActionRule, ...] = ACTION_RULES,
    ):
        self.storage = storage
        self.rules = rules
        self.logger = structlog.get_logger()

    def evaluate(self, breakdown: ScoreBreakdown) -> list[Action]:
        """
        Return the actions whose rules fire for this breakdown, in rule order.

        A rule whose component is absent from the breakdown does not fire.
        """
        actions: list[Action] = []

        for rule in self.rules:
            value = breakdown.component(rule.pillar, rule.component)
            if value is None or not rule.matches(value):
                continue

            actions.append(rule.build_action(value))
            self.logger.debug(
                "action_rule_fired",
                pillar=rule.pillar.value,
                key=rule.key,
                component=rule.component,
                score=value,
                threshold=rule.threshold,
            )

        return actions

    def generate_actions(self, score_date: date, breakdown: ScoreBreakdown) -> list[Action]:
        """
        Evaluate the rule table and upsert every fired action in one batch.

        All rows written by one call share a generated_at timestamp, which is
        recorded as the date's latest run even when nothing fires. Rows from
        earlier runs whose rule no longer fires are left in place.

        Returns:
            The actions fired by this call (not previously stored rows)

        Raises:
            StorageError: If the batch upsert fails
        """
        actions = self.evaluate(breakdown)

        self.storage.upsert_actions(score_date, actions, generated_at=datetime.utcnow())

        self.logger.info(
            "actions_generated",
            score_date=score_date.isoformat(),
            count=len(actions),
            keys=[action.key for action in actions],
        )
        return actions

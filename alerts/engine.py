"""Rule evaluation engine."""
import logging

from models.alerts import RuleEvaluation

logger = logging.getLogger("perfwatch.alerts.engine")


class RuleEngine:
    def __init__(self, rules_manager):
        self.rules_manager = rules_manager

    def evaluate(self, snapshot):
        """Evaluate every enabled rule in declaration order.

        A predicate that raises counts as not firing for this snapshot; the
        error is attached to its RuleEvaluation and the remaining rules
        still run.
        """
        results = []
        for rule in self.rules_manager.get_enabled_rules():
            try:
                should_alert = bool(rule.predicate(snapshot))
                results.append(RuleEvaluation(rule=rule, should_alert=should_alert))
            except Exception as e:
                logger.warning(f"Predicate for rule {rule.id} failed: {e}")
                results.append(RuleEvaluation(rule=rule, should_alert=False, error=str(e)))
        return results

    def test_rules(self, snapshot):
        """Evaluate ALL rules (enabled or not) for display."""
        results = []
        for rule in self.rules_manager.get_all_rules():
            try:
                would_fire = bool(rule.predicate(snapshot))
                error = None
            except Exception as e:
                would_fire = False
                error = str(e)
            results.append({
                "rule_id": rule.id,
                "name": rule.name,
                "threshold": rule.threshold,
                "would_fire": would_fire,
                "severity": rule.severity.value,
                "enabled": rule.enabled,
                "error": error,
            })
        return results

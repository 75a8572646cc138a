"""Alert rules, evaluation, and lifecycle."""
from alerts.rules_manager import RulesManager
from alerts.engine import RuleEngine
from alerts.manager import AlertManager

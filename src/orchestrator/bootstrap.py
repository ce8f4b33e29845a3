"""Builds an engine from rule definitions."""

from typing import Optional

import structlog

from core.config import RuleDefinition
from core.errors import RuleError, UnknownRuleTypeError
from rules.registry import RuleFactory, RuleServices
from .engine import AutomationEngine


logger = structlog.get_logger()


def build_engine(
    definitions: list[RuleDefinition],
    services: Optional[RuleServices] = None,
    factory: Optional[RuleFactory] = None,
    engine: Optional[AutomationEngine] = None,
) -> AutomationEngine:
    """
    Instantiate and register one rule per definition.

    Definitions with an unknown type, invalid settings or a duplicate name are
    logged and skipped; the remaining rules are still registered.
    """
    services = services or RuleServices()
    factory = factory or RuleFactory()
    engine = engine or AutomationEngine()

    for index, definition in enumerate(definitions):
        try:
            rule = factory.create(definition, services)
            engine.register_rule(rule)
        except UnknownRuleTypeError as e:
            logger.warning(
                "unknown_rule_type",
                rule_type=definition.type,
                rule=definition.name,
                index=index,
                **e.to_dict(),
            )
        except RuleError as e:
            logger.error(
                "rule_registration_failed",
                rule_type=definition.type,
                rule=definition.name,
                index=index,
                **e.to_dict(),
            )
        except (ValueError, TypeError) as e:
            logger.error(
                "rule_registration_failed",
                rule_type=definition.type,
                rule=definition.name,
                index=index,
                error=str(e),
            )

    logger.info(
        "engine_built",
        defined=len(definitions),
        registered=len(engine.rules),
    )
    return engine

from __future__ import annotations


class AuditDataError(ValueError):
    pass


class UnknownSeverityError(AuditDataError):
    def __init__(self, impact: object, rule_id: object = None) -> None:
        self.impact = impact
        self.rule_id = rule_id
        where = f" (rule {rule_id})" if rule_id else ""
        super().__init__(f"unknown severity tier {impact!r}{where}")


class DuplicateViolationError(AuditDataError):
    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"violation key {key!r} appears more than once in the same audit")

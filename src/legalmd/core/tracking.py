"""Per-run field tracking ledger"""

from typing import Any, Optional

from legalmd.core.models import FieldRecord, FieldReport, FieldStatus
from legalmd.core.values import MISSING, is_empty, normalize

# Constructs whose presence always classifies a field as logic-derived.
LOGIC_CONSTRUCTS = frozenset({'conditional', 'helper', 'loop'})


def classify(value: Any, has_logic: bool, helper: Optional[str] = None) -> FieldStatus:
    """Logic wins over Filled/Empty."""
    if has_logic or helper in LOGIC_CONSTRUCTS:
        return FieldStatus.logic
    if is_empty(value):
        return FieldStatus.empty
    return FieldStatus.filled


class FieldLedger:
    """One record per distinct field name; a later record for the same name replaces it.

    Create a fresh ledger for every document run (or call reset()); a ledger
    is never shared between runs.
    """

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._records: dict[str, FieldRecord] = {}

    def record(self, name: str, value: Any = None, has_logic: bool = False, helper: Optional[str] = None) -> Optional[FieldRecord]:
        if not self.enabled:
            return None
        try:
            stored = None if value is MISSING else normalize(value)
        except TypeError:
            stored = str(value)
        rec = FieldRecord(
            name=name,
            value=stored,
            status=classify(value, has_logic, helper),
            has_logic=has_logic,
            helper=helper,
        )
        self._records[name] = rec
        return rec

    def get(self, name: str) -> Optional[FieldRecord]:
        return self._records.get(name)

    def by_status(self, status: FieldStatus) -> list[FieldRecord]:
        return [r for r in self._records.values() if r.status == status]

    def report(self) -> FieldReport:
        fields = list(self._records.values())
        return FieldReport(
            total=len(fields),
            filled=sum(1 for r in fields if r.status == FieldStatus.filled),
            empty=sum(1 for r in fields if r.status == FieldStatus.empty),
            logic=sum(1 for r in fields if r.status == FieldStatus.logic),
            fields=fields,
        )

    def reset(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, name: str) -> bool:
        return name in self._records

"""
Fee Schedule Lookup.

Read-only reference table of allowed amounts per procedure code. A schedule is
built once and never mutated; refreshing means building a new schedule and
swapping the registry's reference in one step, so a pricing run that captured
the old schedule keeps seeing a consistent table.

Evidence: Fee schedule structure based on CMS Medicare Fee Schedule
Source: https://www.cms.gov/Medicare/Medicare-Fee-for-Service-Payment/PhysicianFeeSched
"""

import csv
import threading
from decimal import Decimal
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from claimflow.utils.errors import UnknownProcedureCode
from claimflow.utils.logging import get_logger
from claimflow.utils.money import to_money

logger = get_logger(__name__)


class FeeScheduleEntry(BaseModel):
    """Allowed amount for a single procedure code."""

    model_config = ConfigDict(frozen=True)

    procedure_code: str = Field(..., min_length=1)
    allowed_amount: Decimal = Field(..., ge=0)
    description: Optional[str] = None

    @field_validator("procedure_code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("allowed_amount")
    @classmethod
    def quantize_amount(cls, v: Decimal) -> Decimal:
        return to_money(v)


class FeeSchedule:
    """Immutable procedure code -> allowed amount table."""

    def __init__(self, entries: Iterable[FeeScheduleEntry], name: str = "default"):
        table: dict[str, FeeScheduleEntry] = {}
        for entry in entries:
            if entry.procedure_code in table:
                raise ValueError(f"Duplicate fee schedule entry: {entry.procedure_code}")
            table[entry.procedure_code] = entry
        self._entries: Mapping[str, FeeScheduleEntry] = MappingProxyType(table)
        self.name = name

    def __contains__(self, procedure_code: object) -> bool:
        return isinstance(procedure_code, str) and _key(procedure_code) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, procedure_code: str) -> Optional[FeeScheduleEntry]:
        return self._entries.get(_key(procedure_code))

    def lookup(self, procedure_code: str) -> Decimal:
        """
        Allowed amount for a procedure code.

        Raises:
            UnknownProcedureCode: if the code is not in the schedule
        """
        entry = self.get(procedure_code)
        if entry is None:
            raise UnknownProcedureCode(procedure_code)
        return entry.allowed_amount

    @property
    def procedure_codes(self) -> list[str]:
        return sorted(self._entries)

    @classmethod
    def from_amounts(
        cls, amounts: Mapping[str, Union[Decimal, str]], name: str = "default"
    ) -> "FeeSchedule":
        """Build a schedule from a plain code -> amount mapping."""
        return cls(
            (
                FeeScheduleEntry(procedure_code=code, allowed_amount=Decimal(str(amount)))
                for code, amount in amounts.items()
            ),
            name=name,
        )

    @classmethod
    def from_csv(cls, path: Union[str, Path], name: Optional[str] = None) -> "FeeSchedule":
        """
        Load a schedule from CSV.

        Expected header: procedure_code,allowed_amount[,description]
        """
        csv_path = Path(path)
        entries = []
        with csv_path.open(newline="", encoding="utf-8") as f:
            reader = csv.DictReader(f)
            for row_num, row in enumerate(reader, start=2):
                try:
                    entries.append(
                        FeeScheduleEntry(
                            procedure_code=row["procedure_code"],
                            allowed_amount=Decimal(row["allowed_amount"].strip()),
                            description=(row.get("description") or None),
                        )
                    )
                except (KeyError, ArithmeticError, ValueError) as e:
                    raise ValueError(f"{csv_path}:{row_num}: invalid fee schedule row: {e}") from e

        logger.info(f"Loaded fee schedule from {csv_path}: {len(entries)} entries")
        return cls(entries, name=name or csv_path.stem)

    @classmethod
    def demo(cls) -> "FeeSchedule":
        """Demo schedule of common procedure codes."""
        return cls.from_amounts(DEMO_FEE_SCHEDULE, name="demo")


def _key(procedure_code: str) -> str:
    return procedure_code.strip().upper()


# Common procedure codes with typical allowed amounts
DEMO_FEE_SCHEDULE: dict[str, str] = {
    # Evaluation and Management (E/M)
    "99202": "75.00",
    "99203": "110.00",
    "99204": "170.00",
    "99213": "80.00",
    "99214": "120.00",
    "99215": "175.00",
    # Emergency Department
    "99283": "100.00",
    "99284": "175.00",
    "99285": "275.00",
    # Common Procedures
    "11100": "125.00",  # Skin biopsy
    "12001": "175.00",  # Simple repair 2.5cm or less
    "20610": "110.00",  # Joint injection major
    "36415": "5.00",  # Venipuncture
    # Lab
    "80053": "25.00",  # Comprehensive metabolic panel
    "85025": "12.00",  # CBC with differential
    # Radiology
    "71046": "45.00",  # Chest X-ray 2 views
    "70450": "250.00",  # CT head without contrast
    "70551": "475.00",  # MRI brain without contrast
    # EKG/ECG
    "93000": "35.00",  # ECG with interpretation
}


# =============================================================================
# Process-wide Registry
# =============================================================================


class FeeScheduleRegistry:
    """Holds the current schedule; refreshes are whole-reference swaps."""

    def __init__(self, schedule: FeeSchedule):
        self._schedule = schedule
        self._swap_lock = threading.Lock()

    def current(self) -> FeeSchedule:
        return self._schedule

    def swap(self, schedule: FeeSchedule) -> FeeSchedule:
        """Replace the current schedule, returning the previous one."""
        with self._swap_lock:
            previous, self._schedule = self._schedule, schedule
        logger.info(
            f"Fee schedule swapped: {previous.name} ({len(previous)} codes) -> "
            f"{schedule.name} ({len(schedule)} codes)"
        )
        return previous


_registry: Optional[FeeScheduleRegistry] = None


def get_fee_schedule_registry() -> FeeScheduleRegistry:
    """Get the process-wide registry, loading the configured schedule once."""
    global _registry
    if _registry is None:
        from claimflow.core.config import get_settings

        path = get_settings().FEE_SCHEDULE_PATH
        schedule = FeeSchedule.from_csv(path) if path else FeeSchedule.demo()
        _registry = FeeScheduleRegistry(schedule)
    return _registry

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence


@dataclass(frozen=True)
class UsageSummary:
    """Usage accumulated over one session, reported at teardown"""
    job_id: str
    totals: Dict[str, float] = field(default_factory=dict)
    models: List[dict] = field(default_factory=list)
    events_collected: int = 0
    events_dropped: int = 0
    estimated_cost: Optional[float] = None

    @classmethod
    def from_totals(
        cls,
        job_id: str,
        totals: Mapping[str, float],
        *,
        models: Sequence[dict] = (),
        rates: Optional[Mapping[str, float]] = None,
        events_collected: int = 0,
        events_dropped: int = 0,
    ) -> 'UsageSummary':
        """Build a summary, pricing each category that has a per-unit rate"""
        estimated_cost = None
        if rates:
            estimated_cost = round(
                sum(totals.get(category, 0) * rate for category, rate in rates.items()),
                6,
            )

        return cls(
            job_id=job_id,
            totals=dict(totals),
            models=[dict(m) for m in models],
            events_collected=events_collected,
            events_dropped=events_dropped,
            estimated_cost=estimated_cost,
        )

    def to_dict(self) -> dict:
        return {
            'job_id': self.job_id,
            'totals': dict(self.totals),
            'models': [dict(m) for m in self.models],
            'events_collected': self.events_collected,
            'events_dropped': self.events_dropped,
            'estimated_cost': self.estimated_cost,
        }

"""In-process access-control metrics for lightweight observability.

Counters and histograms are process-local and reset on restart. They are rendered in
the Prometheus text exposition format for scraping.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from threading import Lock

_BUCKETS_MS: tuple[float, ...] = (5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000)


def _sanitize_label_value(value: str) -> str:
    # Prometheus label values are quoted, but escaping keeps output safe.
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


@dataclass
class _Histogram:
    buckets_ms: tuple[float, ...] = _BUCKETS_MS
    # bucket upper bound -> observations in that bucket only
    bucket_counts: dict[float, int] = field(default_factory=dict)
    count: int = 0
    sum_ms: float = 0.0

    def observe(self, value_ms: float) -> None:
        self.count += 1
        self.sum_ms += float(value_ms)
        for bound in self.buckets_ms:
            if value_ms <= bound:
                self.bucket_counts[bound] = self.bucket_counts.get(bound, 0) + 1
                break


class AccessMetrics:
    """Thread-safe counters for admin auth, tenant resolution, and sign-in decisions.

    Label values come from closed sets (error codes, decision reasons), so label
    cardinality is bounded without extra guards.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._admin_auth_total: dict[str, int] = {}
        self._admin_auth_duration_ms: dict[str, _Histogram] = {}
        self._tenant_resolution_total: dict[str, int] = {}
        self._signin_decision_total: dict[tuple[str, str], int] = {}

    def inc_admin_auth(self, *, outcome: str) -> None:
        with self._lock:
            self._admin_auth_total[outcome] = self._admin_auth_total.get(outcome, 0) + 1

    def observe_admin_auth_duration_ms(self, *, outcome: str, duration_ms: float) -> None:
        with self._lock:
            hist = self._admin_auth_duration_ms.get(outcome)
            if hist is None:
                hist = _Histogram()
                self._admin_auth_duration_ms[outcome] = hist
            hist.observe(duration_ms)

    def inc_tenant_resolution(self, *, outcome: str) -> None:
        with self._lock:
            current = self._tenant_resolution_total.get(outcome, 0)
            self._tenant_resolution_total[outcome] = current + 1

    def inc_signin_decision(self, *, outcome: str, reason: str) -> None:
        key = (outcome, reason)
        with self._lock:
            self._signin_decision_total[key] = self._signin_decision_total.get(key, 0) + 1

    def snapshot(self) -> dict[str, dict]:
        """Copy of the counters, keyed by metric name (histograms excluded)."""
        with self._lock:
            return {
                "admin_auth_total": dict(self._admin_auth_total),
                "tenant_resolution_total": dict(self._tenant_resolution_total),
                "signin_decision_total": dict(self._signin_decision_total),
            }

    def render_prometheus(self) -> str:
        """Render all metrics in Prometheus text exposition format."""
        lines: list[str] = []

        with self._lock:
            lines.append("# HELP admin_auth_total Admin authorization attempts by outcome")
            lines.append("# TYPE admin_auth_total counter")
            for outcome, count in sorted(self._admin_auth_total.items()):
                lines.append(f'admin_auth_total{{outcome="{_sanitize_label_value(outcome)}"}} {count}')

            lines.append("# HELP admin_auth_duration_ms Admin authorization duration (ms)")
            lines.append("# TYPE admin_auth_duration_ms histogram")
            for outcome, hist in sorted(self._admin_auth_duration_ms.items()):
                outcome_label = _sanitize_label_value(outcome)
                cumulative = 0
                for bound in hist.buckets_ms:
                    cumulative += hist.bucket_counts.get(bound, 0)
                    labels = f'outcome="{outcome_label}",le="{bound}"'
                    lines.append(f"admin_auth_duration_ms_bucket{{{labels}}} {cumulative}")
                labels_inf = f'outcome="{outcome_label}",le="+Inf"'
                lines.append(f"admin_auth_duration_ms_bucket{{{labels_inf}}} {hist.count}")
                lines.append(f'admin_auth_duration_ms_sum{{outcome="{outcome_label}"}} {hist.sum_ms}')
                lines.append(f'admin_auth_duration_ms_count{{outcome="{outcome_label}"}} {hist.count}')

            lines.append("# HELP tenant_resolution_total Tenant resolution attempts by outcome")
            lines.append("# TYPE tenant_resolution_total counter")
            for outcome, count in sorted(self._tenant_resolution_total.items()):
                label = _sanitize_label_value(outcome)
                lines.append(f'tenant_resolution_total{{outcome="{label}"}} {count}')

            lines.append("# HELP signin_decision_total Sign-in hook decisions")
            lines.append("# TYPE signin_decision_total counter")
            for (outcome, reason), count in sorted(self._signin_decision_total.items()):
                outcome_label = _sanitize_label_value(outcome)
                reason_label = _sanitize_label_value(reason)
                lines.append(
                    f'signin_decision_total{{outcome="{outcome_label}",reason="{reason_label}"}} '
                    f"{count}"
                )

        return "\n".join(lines) + "\n"

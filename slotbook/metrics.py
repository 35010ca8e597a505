from prometheus_client import Counter, Histogram

REQUEST_COUNTER = Counter(
    "slotbook_api_requests_total",
    "Total number of processed HTTP requests.",
    ["method", "path", "status", "tenant"],
)
REQUEST_LATENCY = Histogram(
    "slotbook_api_request_duration_seconds",
    "HTTP request latency in seconds.",
    ["method", "path"],
)
BOOKINGS_CREATED = Counter(
    "slotbook_bookings_created_total",
    "Appointments successfully booked.",
)
BOOKING_CONFLICTS = Counter(
    "slotbook_booking_conflicts_total",
    "Booking or reschedule attempts rejected because of an overlap.",
)
SWEEP_CANCELLED = Counter(
    "slotbook_sweep_cancelled_total",
    "Past-due appointments cancelled by the reconciliation sweep.",
)
SWEEP_TENANT_FAILURES = Counter(
    "slotbook_sweep_tenant_failures_total",
    "Tenants whose reconciliation failed during a sweep.",
)

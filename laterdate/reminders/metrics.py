from prometheus_client import Counter


scheduler_scans_total = Counter(
    "reminder_scheduler_scans_total",
    "Total dispatch poll cycles",
)

scheduler_scans_aborted_total = Counter(
    "reminder_scheduler_scans_aborted_total",
    "Poll cycles abandoned because the store could not be queried",
)

reminders_dispatch_success_total = Counter(
    "reminders_dispatch_success_total",
    "Total successful channel sends",
    ["channel"],
)

reminders_dispatch_failed_total = Counter(
    "reminders_dispatch_failed_total",
    "Total failed channel sends",
    ["channel"],
)

reminders_mark_failed_total = Counter(
    "reminders_mark_failed_total",
    "Sends that succeeded but whose sent flag could not be written",
    ["channel"],
)

reminders_malformed_total = Counter(
    "reminders_malformed_total",
    "Reminders skipped in a poll because of missing or invalid data",
)

from prometheus_client import Counter


scheduler_ticks_total = Counter(
    "reminder_scheduler_ticks_total",
    "Total scheduler ticks",
)

reminders_notified_total = Counter(
    "reminders_notified_total",
    "Total due reminders a push was attempted for",
)

reminders_dispatch_success_total = Counter(
    "reminders_dispatch_success_total",
    "Total device tokens a push was delivered to",
)

reminders_dispatch_failed_total = Counter(
    "reminders_dispatch_failed_total",
    "Total failed push deliveries, per token or per transport failure",
)

invalid_tokens_removed_total = Counter(
    "reminder_invalid_tokens_removed_total",
    "Total device tokens removed after being reported permanently invalid",
)

reminder_rollovers_total = Counter(
    "reminder_rollovers_total",
    "Reminder rollovers by outcome",
    ["outcome"],
)

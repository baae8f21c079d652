"""Shared names and limits for the durable job queue."""

# Workflow and activity names
QUEUE_DISPATCH_WORKFLOW = "QueueDispatchWorkflow"
DISPATCH_ACTIVITY = "dispatch_queue_message"
DEAD_LETTER_ACTIVITY = "record_dead_letter"

# Timeouts
DISPATCH_ACTIVITY_TIMEOUT_SECONDS = 3 * 3600  # setup pipeline on large projects
DEAD_LETTER_TIMEOUT_SECONDS = 60

# Redelivery backoff
RETRY_INITIAL_INTERVAL_SECONDS = 5
RETRY_BACKOFF_COEFFICIENT = 2.0
RETRY_MAXIMUM_INTERVAL_SECONDS = 300

"""TaskMate: scheduled tasks with escalating SMS reminders."""

"""Discord host process for slot reminders and announcements."""

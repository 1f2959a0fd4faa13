"""Session continuity: tracking, observing and resuming Codex sessions."""

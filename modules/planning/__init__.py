"""modules/planning — Candidate scoring and initial day building."""
